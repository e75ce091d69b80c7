"""
Sampler Engine.

MCMCSampler owns the chain state, the proposal registry, the tuning records
and the output files of one run, and drives the sweep loop.

A run moves through the SamplerStage lifecycle:

    sampler = MCMCSampler()
    sampler.configure(options)
    sampler.set_model(import_fn, initialise_fn, log_posterior_fn,
                      update_missing_fn=update_missing_fn)
    sampler.set_output_writer(write_fn)
    sampler.import_data(options.input_file, options.predict_file)
    sampler.add_proposals(compose_proposals(options, sampler.dataset, library))
    sampler.set_proposal_params(tuning)
    with sampler.output_files(options.output_stem):
        sampler.write_log_file()
        sampler.initialise_chain()
        record = sampler.run()

Calls made out of order raise SamplerStateError. Failures raised by model
callables are not caught or retried: initialise_chain() and run() mark the
sampler FAILED, release the output files and re-raise.

Every sweep:
1. Missing data is re-imputed (when the model has any)
2. Each registered proposal active on this sweep runs repeat_count times,
   in registration order, receiving its own tuning record
3. The state is written out at thinning points
4. Progress is logged every n_progress sweeps
"""

import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .types import SamplerStage, RunRecord, is_output_sweep
from .config import gen_rng_key, configure_precision, validate_sampler_inputs
from .diagnostics import print_acceptance_summary, format_run_header, store_log_file_data
from ..error_handling import ConfigurationError, SamplerStateError, validate_options
from ..output_management import OutputFiles
from ..proposal_specs import ProposalSpec

import logging
logger = logging.getLogger('prmcmc')


class MCMCSampler:
    """Sweep-based MCMC engine for one run."""

    def __init__(self):
        self._stage = SamplerStage.UNCONFIGURED
        self._options = None
        self._key = None

        # Model binding
        self._import_fn = None
        self._initialise_fn = None
        self._log_posterior_fn = None
        self._update_missing_fn = None
        self._has_missing_data = None
        self._output_writer = None

        self._proposals: List[ProposalSpec] = []
        self._tuning: Dict[str, Any] = {}
        self._dataset = None
        self._state = None
        self._files: Optional[OutputFiles] = None
        self._record: Optional[RunRecord] = None
        self._begin_time = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def stage(self) -> SamplerStage:
        return self._stage

    @property
    def options(self):
        return self._options

    @property
    def dataset(self):
        return self._dataset

    @property
    def state(self):
        return self._state

    @property
    def proposals(self) -> List[ProposalSpec]:
        return list(self._proposals)

    @property
    def tuning(self) -> Dict[str, Any]:
        return self._tuning

    @property
    def has_missing_data(self) -> bool:
        return bool(self._has_missing_data)

    @property
    def record(self) -> Optional[RunRecord]:
        return self._record

    @property
    def files(self) -> Optional[OutputFiles]:
        return self._files

    # ------------------------------------------------------------------
    # Stage bookkeeping
    # ------------------------------------------------------------------

    def _require(self, operation: str, *stages: SamplerStage) -> None:
        if self._stage not in stages:
            expected = ', '.join(str(s) for s in stages)
            raise SamplerStateError(
                f"{operation}() called in stage {self._stage!s}; expected one of: {expected}"
            )

    def _advance(self, stage: SamplerStage) -> None:
        logger.debug(f"Sampler stage: {self._stage!s} -> {stage!s}")
        self._stage = stage

    def _require_open_files(self, operation: str) -> None:
        if self._files is None or self._files.closed:
            raise SamplerStateError(f"{operation}() requires open output files")

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def configure(self, options) -> None:
        """
        Fix the run options, seed the PRNG and select float precision.

        Raises:
            ConfigurationError: If the options are invalid
        """
        self._require('configure', SamplerStage.UNCONFIGURED)
        validate_options(options)
        configure_precision(options.use_double)
        self._options = options
        self._key = gen_rng_key(options.seed)
        self._begin_time = time.perf_counter()
        self._advance(SamplerStage.CONFIGURED)

    def set_model(self, import_fn: Callable, initialise_fn: Callable, log_posterior_fn: Callable,
                  has_missing_data: Optional[bool] = None,
                  update_missing_fn: Optional[Callable] = None) -> None:
        """
        Bind the model callables.

        Args:
            import_fn: (data_path, predict_path, options) -> dataset
            initialise_fn: (dataset, options, key) -> (state, key)
            log_posterior_fn: (state, dataset) -> float
            has_missing_data: Whether to run update_missing_fn every sweep.
                None decides from the imported dataset's `has_missing` flag.
            update_missing_fn: (state, dataset, key) -> (dataset, key)
        """
        self._require('set_model', SamplerStage.UNCONFIGURED, SamplerStage.CONFIGURED)
        for label, fn in (('import_fn', import_fn), ('initialise_fn', initialise_fn),
                          ('log_posterior_fn', log_posterior_fn)):
            if not callable(fn):
                raise ConfigurationError(f"{label} must be callable")
        if has_missing_data and update_missing_fn is None:
            raise ConfigurationError("Model declares missing data but gives no update_missing_fn")

        self._import_fn = import_fn
        self._initialise_fn = initialise_fn
        self._log_posterior_fn = log_posterior_fn
        self._has_missing_data = has_missing_data
        self._update_missing_fn = update_missing_fn

    def set_output_writer(self, writer: Callable) -> None:
        """writer: (files, sweep, state, dataset, tuning, log_post) -> None"""
        if self._stage >= SamplerStage.RUNNING:
            raise SamplerStateError(f"set_output_writer() called in stage {self._stage!s}")
        self._output_writer = writer

    def import_data(self, data_path, predict_path=None) -> None:
        """
        Load the dataset through the bound importer.

        Importer errors (DataFormatError, OSError) propagate unchanged.
        """
        self._require('import_data', SamplerStage.CONFIGURED)
        if self._import_fn is None:
            raise SamplerStateError("import_data() called before set_model()")

        logger.info(f"Importing data from {data_path}")
        dataset = self._import_fn(data_path, predict_path, self._options)

        if self._has_missing_data is None:
            self._has_missing_data = bool(getattr(dataset, 'has_missing', False))
        if self._has_missing_data and self._update_missing_fn is None:
            raise ConfigurationError("Dataset has missing values but the model gives no update_missing_fn")

        self._dataset = dataset
        self._advance(SamplerStage.DATA_LOADED)

    def add_proposal(self, spec: ProposalSpec) -> None:
        """
        Append one proposal to the registry.

        Raises:
            ConfigurationError: On a duplicate name or a first sweep past the end of the run
        """
        self._require('add_proposal', SamplerStage.DATA_LOADED, SamplerStage.PROPOSALS_REGISTERED)
        if not isinstance(spec, ProposalSpec):
            raise ConfigurationError(f"Expected ProposalSpec, got {type(spec)}")
        if any(p.name == spec.name for p in self._proposals):
            raise ConfigurationError(f"Proposal '{spec.name}' is already registered")
        if spec.first_sweep > self._options.n_sweeps:
            raise ConfigurationError(
                f"Proposal '{spec.name}' first_sweep ({spec.first_sweep}) exceeds "
                f"nSweeps ({self._options.n_sweeps})"
            )

        self._proposals.append(spec)
        if self._stage != SamplerStage.PROPOSALS_REGISTERED:
            self._advance(SamplerStage.PROPOSALS_REGISTERED)

    def add_proposals(self, specs) -> None:
        for spec in specs:
            self.add_proposal(spec)

    def set_proposal_params(self, tuning: Dict[str, Any]) -> None:
        """Install the tuning records, keyed by proposal name."""
        self._require('set_proposal_params', SamplerStage.DATA_LOADED,
                      SamplerStage.PROPOSALS_REGISTERED)
        self._tuning = dict(tuning)

    # ------------------------------------------------------------------
    # Output files and run log
    # ------------------------------------------------------------------

    def initialise_output_files(self, stem=None) -> None:
        """
        Open the run's output files.

        Raises:
            OSError: If the log file cannot be created
        """
        self._require('initialise_output_files', SamplerStage.PROPOSALS_REGISTERED)
        stem = self._options.output_stem if stem is None else stem
        self._files = OutputFiles.open(stem)
        self._advance(SamplerStage.OUTPUT_READY)

    @contextmanager
    def output_files(self, stem=None):
        """Open the output files for the block; close them however it exits."""
        self.initialise_output_files(stem)
        try:
            yield self._files
        finally:
            self.close_output_files()

    def write_log_file(self) -> None:
        """Write the run header (options and proposal registry) to the log."""
        self._require_open_files('write_log_file')
        self._files.write_log(format_run_header(self._options, self._proposals))

    def append_to_log_file(self, text: str) -> None:
        self._require_open_files('append_to_log_file')
        self._files.write_log(text)

    def close_output_files(self) -> None:
        """Release the output files. Safe to call repeatedly."""
        if self._files is not None:
            self._files.close()

    # ------------------------------------------------------------------
    # Chain
    # ------------------------------------------------------------------

    def initialise_chain(self) -> None:
        """Build the starting state with the bound initialiser."""
        self._require('initialise_chain', SamplerStage.OUTPUT_READY)
        validate_sampler_inputs(self._proposals, self._tuning)

        try:
            self._state, self._key = self._initialise_fn(self._dataset, self._options, self._key)
        except Exception as e:
            self._advance(SamplerStage.FAILED)
            logger.error(f"Chain initialisation failed: {type(e).__name__}: {e}")
            self.close_output_files()
            raise
        logger.info(
            f"Chain initialised: {self._state.n_clusters_init} initial clusters, "
            f"capacity {self._state.max_n_clusters}"
        )
        self._advance(SamplerStage.CHAIN_INITIALISED)

    def _sweep(self, sweep: int) -> None:
        if self._has_missing_data:
            self._dataset, self._key = self._update_missing_fn(self._state, self._dataset, self._key)

        for spec in self._proposals:
            if not spec.is_active(sweep):
                continue
            record = self._tuning.get(spec.name)
            for _ in range(spec.repeat_count):
                self._state, self._key = spec.update_fn(self._state, record, self._dataset, self._key)

    def _write_output(self, sweep: int) -> None:
        log_post = float(self._log_posterior_fn(self._state, self._dataset))
        if self._output_writer is not None:
            self._output_writer(self._files, sweep, self._state, self._dataset, self._tuning, log_post)
        else:
            self._files.write('logPost', log_post)
        self._record.output_sweeps.append(sweep)

    def run(self) -> RunRecord:
        """
        Run every sweep, then append the run summary to the log.

        Returns:
            RunRecord with the elapsed time since configure() and the sweeps
            written out

        Raises:
            Whatever a bound callable raises; the sampler is left FAILED with
            its output files closed.
        """
        self._require('run', SamplerStage.CHAIN_INITIALISED)
        self._require_open_files('run')

        opts = self._options
        self._record = RunRecord(n_sweeps=opts.n_sweeps)
        self._advance(SamplerStage.RUNNING)

        logger.info("\n--- MCMC RUN ---")
        logger.info(f"  Sweeps: {opts.n_sweeps} (burn-in {opts.n_burn}, filter {opts.n_filter})")
        logger.info(f"  Proposals: {len(self._proposals)}")

        start_time = time.perf_counter()
        sweep = 0
        try:
            for sweep in range(1, opts.n_sweeps + 1):
                self._sweep(sweep)

                if is_output_sweep(sweep, opts.n_burn, opts.n_filter, opts.report_burn_in):
                    self._write_output(sweep)

                if sweep % opts.n_progress == 0:
                    elapsed = time.perf_counter() - start_time
                    message = f"Sweep {sweep}/{opts.n_sweeps} ({elapsed:.1f}s)"
                    logger.info(f"  {message}")
                    self._files.write_log(message)

            # Timed from configure(), so data import and initialisation count too
            self._record.elapsed_seconds = time.perf_counter() - self._begin_time
            self._record.summary = store_log_file_data(
                opts, self._dataset, self._state, self._record.elapsed_seconds, self._tuning
            )
            self.append_to_log_file(self._record.summary)
            self._files.flush()
        except Exception as e:
            self._advance(SamplerStage.FAILED)
            logger.error(f"Sampler failed on sweep {sweep}: {type(e).__name__}: {e}")
            self.close_output_files()
            raise

        print_acceptance_summary(self._proposals, self._tuning)
        logger.info(f"Completed {opts.n_sweeps} sweeps in {self._record.elapsed_seconds:.2f}s "
                    f"({len(self._record.output_sweeps)} samples written)")
        self._advance(SamplerStage.COMPLETED)
        return self._record

    def final_log_posterior(self) -> float:
        if self._state is None:
            raise SamplerStateError("final_log_posterior() called before initialise_chain()")
        return float(np.asarray(self._log_posterior_fn(self._state, self._dataset)))
