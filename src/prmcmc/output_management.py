"""
Output file management.

A run writes a family of plain-text files sharing one stem:
- {stem}_log.txt: run log (header, progress notes, final summary)
- {stem}_{name}.txt: one line per output sweep for each recorded quantity

The log is opened eagerly so an unwritable location fails before sampling
starts. Per-quantity files open lazily on their first write. All handles are
released together by close(), which is safe to call more than once.
"""

from pathlib import Path
from typing import Dict

import numpy as np

import logging
logger = logging.getLogger('prmcmc')


def get_output_paths(stem: str, names=()) -> Dict[str, Path]:
    """
    File paths for an output stem.

    Args:
        stem: Output stem (e.g., 'results/run1')
        names: Quantity names to include besides the log

    Returns:
        Dict mapping 'log' and each name to its path
    """
    stem = str(stem)
    paths = {'log': Path(f"{stem}_log.txt")}
    for name in names:
        paths[name] = Path(f"{stem}_{name}.txt")
    return paths


def format_values(values) -> str:
    """Render a scalar or array as one space-separated line."""
    arr = np.asarray(values).ravel()
    if np.issubdtype(arr.dtype, np.integer) or arr.dtype == np.bool_:
        return ' '.join(str(int(v)) for v in arr)
    return ' '.join(f"{float(v):.10g}" for v in arr)


class OutputFiles:
    """Handles for one run's output files."""

    def __init__(self, stem: str):
        self.stem = str(stem)
        self._handles = {}
        self._log = None
        self.closed = False
        self.close_count = 0

    @classmethod
    def open(cls, stem: str) -> 'OutputFiles':
        """
        Open the run log for a stem.

        Raises:
            OSError: If the log file cannot be created
        """
        files = cls(stem)
        log_path = get_output_paths(stem)['log']
        files._log = open(log_path, 'w')
        logger.debug(f"Opened run log {log_path}")
        return files

    @property
    def paths(self) -> Dict[str, Path]:
        return get_output_paths(self.stem, self._handles.keys())

    def _check_open(self):
        if self.closed:
            raise ValueError(f"Output files for '{self.stem}' are already closed")

    def write(self, name: str, values) -> None:
        """Append one line to {stem}_{name}.txt, opening it on first use."""
        self._check_open()
        handle = self._handles.get(name)
        if handle is None:
            handle = open(get_output_paths(self.stem, [name])[name], 'w')
            self._handles[name] = handle
        handle.write(format_values(values) + '\n')

    def write_log(self, text: str) -> None:
        self._check_open()
        self._log.write(text)
        if not text.endswith('\n'):
            self._log.write('\n')
        self._log.flush()

    def flush(self) -> None:
        if self.closed:
            return
        for handle in self._handles.values():
            handle.flush()
        self._log.flush()

    def close(self) -> None:
        """Close every handle. Later calls do nothing."""
        if self.closed:
            return
        self.closed = True
        self.close_count += 1

        handles = list(self._handles.values())
        if self._log is not None:
            handles.append(self._log)

        first_error = None
        for handle in handles:
            try:
                handle.close()
            except OSError as e:
                logger.warning(f"Could not close {handle.name}: {e}")
                if first_error is None:
                    first_error = e

        logger.info("Output files closed")
        if first_error is not None:
            raise first_error
