"""
Sampler Data Structures and Type Definitions.

- SamplerStage: lifecycle stages of an MCMCSampler
- RunRecord: what a completed run reports back
- is_output_sweep: the thinning rule
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List


class SamplerStage(IntEnum):
    """
    Lifecycle stages, in the order a run passes through them.

    FAILED is terminal and reached when initialise_chain() or run() raises.
    """
    UNCONFIGURED = 0
    CONFIGURED = 1
    DATA_LOADED = 2
    PROPOSALS_REGISTERED = 3
    OUTPUT_READY = 4
    CHAIN_INITIALISED = 5
    RUNNING = 6
    COMPLETED = 7
    FAILED = 8

    def __str__(self):
        return self.name


def is_output_sweep(sweep: int, n_burn: int, n_filter: int, report_burn_in: bool = False) -> bool:
    """
    True if the chain state after this (1-indexed) sweep is written out.

    Post burn-in every n_filter-th sweep counted from the end of burn-in is
    written; with report_burn_in, burn-in sweeps divisible by n_filter are too.
    """
    if sweep > n_burn:
        return (sweep - n_burn) % n_filter == 0
    return report_burn_in and sweep % n_filter == 0


@dataclass
class RunRecord:
    """Summary of a finished run."""
    n_sweeps: int
    elapsed_seconds: float = 0.0
    output_sweeps: List[int] = field(default_factory=list)
    summary: str = ''
