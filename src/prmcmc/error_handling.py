"""
Error Handling and Validation Utilities for the Profile Regression Sampler

This module provides the exception types raised by the sampler, validation of
run options, and diagnostic tools for the final chain state.
"""

from typing import Any, Dict

import numpy as np

from .options import OutcomeType, CovariateType, VarSelectType, SamplerType

import logging
logger = logging.getLogger('prmcmc')


class ConfigurationError(ValueError):
    """Malformed or contradictory run options."""


class DataFormatError(ValueError):
    """Input data could not be parsed or is inconsistent with the options."""


class SamplerStateError(RuntimeError):
    """A sampler operation was called out of lifecycle order."""


def validate_options(options) -> None:
    """
    Validates that run options are sensible.

    Args:
        options: SamplerOptions instance

    Raises:
        ConfigurationError: Listing every problem found
    """
    errors = []

    if options.n_sweeps < 1:
        errors.append("nSweeps must be >= 1")

    if options.n_burn < 0:
        errors.append("nBurn must be >= 0")
    elif options.n_burn > options.n_sweeps:
        errors.append(
            f"nBurn ({options.n_burn}) cannot exceed nSweeps ({options.n_sweeps})"
        )

    if options.n_filter < 1:
        errors.append("nFilter must be >= 1")

    if options.n_progress < 1:
        errors.append("nProgress must be >= 1")

    if options.max_n_clusters < 2:
        errors.append("maxNClusters must be >= 2")

    if options.n_clus_init < 0:
        errors.append("nClusInit must be >= 0")
    elif options.n_clus_init > options.max_n_clusters:
        errors.append(
            f"nClusInit ({options.n_clus_init}) cannot exceed maxNClusters ({options.max_n_clusters})"
        )

    # Negative means estimate; a held concentration of 0 gives degenerate sticks
    if options.fixed_alpha == 0:
        errors.append("A fixed alpha must be > 0 (use a negative value to estimate it)")

    if not isinstance(options.use_double, bool):
        errors.append(f"use_double must be True or False, got {options.use_double!r}")

    # Enumerated switches: unrecognised strings survive coercion and land here
    if not isinstance(options.covariate_type, CovariateType):
        errors.append(
            f"Unrecognised covariate type '{options.covariate_type}'. "
            f"Expected one of: {', '.join(t.value for t in CovariateType)}"
        )
    if not isinstance(options.var_select_type, VarSelectType):
        errors.append(
            f"Unrecognised variable selection type '{options.var_select_type}'. "
            f"Expected one of: {', '.join(t.value for t in VarSelectType)}"
        )
    if not isinstance(options.sampler_type, SamplerType):
        errors.append(
            f"Unrecognised sampler type '{options.sampler_type}'. "
            f"Expected one of: {', '.join(t.value for t in SamplerType)}"
        )

    if options.include_response:
        if options.outcome_type is None:
            errors.append("Response included but no outcome type (yModel) set")
        elif not isinstance(options.outcome_type, OutcomeType):
            errors.append(
                f"Unrecognised outcome type '{options.outcome_type}'. "
                f"Expected one of: {', '.join(t.value for t in OutcomeType)}"
            )
    elif options.response_extra_var:
        errors.append("extraYVar requires the response to be included (remove excludeY)")

    if errors:
        raise ConfigurationError("Invalid sampler configuration:\n  " + "\n  ".join(errors))


def diagnose_chain_issues(state, diagnostics: Dict[str, Any]) -> Dict[str, Any]:
    """
    Inspects the final chain state for common problems.

    Args:
        state: Final chain state (anything exposing a `summary_arrays()` mapping)
        diagnostics: Existing diagnostics dict to extend

    Returns:
        diagnostics: Dictionary with issues, warnings, and info
    """
    diagnostics = diagnostics | {
        'issues': [],
        'warnings': [],
        'info': []
    }

    arrays = state.summary_arrays()
    for name, values in arrays.items():
        values = np.asarray(values)
        if values.size and not np.all(np.isfinite(values)):
            diagnostics['issues'].append(
                f"'{name}' contains NaN or Inf values - sampler became unstable"
            )

    n_occupied = state.n_occupied()
    if n_occupied <= 1:
        diagnostics['warnings'].append(
            "All subjects allocated to a single cluster"
        )
    elif n_occupied >= state.max_n_clusters:
        diagnostics['warnings'].append(
            f"Every one of the {state.max_n_clusters} available clusters is occupied - "
            f"consider increasing maxNClusters"
        )

    diagnostics['info'].append(f"Occupied clusters: {n_occupied}")
    diagnostics['info'].append(f"Cluster capacity: {state.max_n_clusters}")

    return diagnostics


def print_diagnostics(diagnostics: Dict[str, Any]) -> None:
    """Pretty-print diagnostics from diagnose_chain_issues."""
    if diagnostics['issues']:
        logger.error("\n[ERROR] ISSUES:")
        for issue in diagnostics['issues']:
            logger.error(f"  - {issue}")

    if diagnostics['warnings']:
        logger.warning("\n[WARN] WARNINGS:")
        for warning in diagnostics['warnings']:
            logger.warning(f"  - {warning}")

    if diagnostics['info']:
        logger.info("\n[INFO] INFO:")
        for info in diagnostics['info']:
            logger.info(f"  - {info}")

    if not diagnostics['issues'] and not diagnostics['warnings']:
        logger.info("\n[OK] No issues detected")
