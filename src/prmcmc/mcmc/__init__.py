"""
MCMC Subpackage - Sampler engine.

This package contains the sweep-loop engine and its helpers:
- backend: One-call driver (profile_regression)
- sampler: MCMCSampler, the lifecycle and sweep loop
- config: PRNG seeding, precision and registry checks
- diagnostics: Acceptance summaries and log text
- types: SamplerStage, RunRecord, thinning rule
- utils: Config defaults
"""

from .types import SamplerStage, RunRecord, is_output_sweep
from .sampler import MCMCSampler
from .config import gen_rng_key, configure_precision, validate_sampler_inputs
from .diagnostics import print_acceptance_summary, store_log_file_data
from .backend import profile_regression, build_sampler

__all__ = [
    # Main entry points
    'profile_regression',
    'build_sampler',
    'MCMCSampler',
    # Types
    'SamplerStage',
    'RunRecord',
    'is_output_sweep',
    # Config
    'gen_rng_key',
    'configure_precision',
    'validate_sampler_inputs',
    # Diagnostics
    'print_acceptance_summary',
    'store_log_file_data',
]
