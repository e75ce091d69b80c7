"""
Run Diagnostics and Log Text.

- print_acceptance_summary: acceptance rates of the adaptive proposals
- format_run_header: log file header (options and proposal registry)
- store_log_file_data: end-of-run summary appended to the log
"""

import dataclasses
from typing import Dict, List

import numpy as np

from ..proposal_specs import ProposalSpec

import logging
logger = logging.getLogger('prmcmc')


def print_acceptance_summary(specs: List[ProposalSpec], tuning: Dict) -> None:
    """
    Log acceptance rates for every adaptive proposal that has been tried.

    Args:
        specs: Registered ProposalSpec objects
        tuning: Dict of TuningRecord keyed by proposal name
    """
    rates = []
    labels = []
    for spec in specs:
        record = tuning.get(spec.name)
        if record is None or not np.any(record.n_tries > 0):
            continue
        rates.append(float(np.mean(record.acceptance_rate()[record.n_tries > 0])))
        labels.append(spec.name)

    if not rates:
        return

    rates = np.array(rates)
    logger.info(f"\n--- MH Acceptance Rates ({len(rates)} proposals) ---")
    for label, rate in zip(labels, rates):
        logger.info(f"  {label}: {rate:.1%}")

    low_rate_mask = rates < 0.10
    if np.any(low_rate_mask):
        low_labels = [lbl for lbl, is_low in zip(labels, low_rate_mask) if is_low]
        logger.warning(f"  WARNING: {len(low_labels)} proposal(s) have acceptance rate < 10%: "
                       f"{', '.join(low_labels)}")


def format_run_header(options, specs: List[ProposalSpec]) -> str:
    """Log file header: every run option and the proposal registry."""
    lines = ["Run options:"]
    for key, value in options.to_config().items():
        lines.append(f"  {key}: {value}")

    lines.append(f"Proposals ({len(specs)}):")
    for i, spec in enumerate(specs):
        lines.append(
            f"  {i + 1:2d}. {spec.name} [{spec.kind!s}] first_sweep={spec.first_sweep} "
            f"repeat_count={spec.repeat_count} weight={spec.weight}"
        )
    return '\n'.join(lines)


def _format_hyper(hyper) -> List[str]:
    if hyper is None:
        return ["  (none)"]
    if dataclasses.is_dataclass(hyper):
        items = dataclasses.asdict(hyper).items()
    elif isinstance(hyper, dict):
        items = hyper.items()
    else:
        return [f"  {hyper!r}"]

    lines = []
    for key, value in items:
        if hasattr(value, 'tolist'):
            value = value.tolist()
        lines.append(f"  {key}: {value}")
    return lines


def store_log_file_data(options, dataset, state, elapsed_seconds: float, tuning: Dict) -> str:
    """
    End-of-run summary text.

    Covers the model structure, data dimensions, hyperparameters, cluster
    settings, adaptive acceptance rates and the elapsed time.
    """
    lines = ["", "Run summary:"]
    lines.append(f"  Outcome model: {options.outcome_type if options.include_response else 'excluded'}")
    lines.append(f"  Covariate model: {options.covariate_type}")
    lines.append(f"  Variable selection: {options.var_select_type}")
    lines.append(f"  Sampler: {options.sampler_type}")
    lines.append(f"  Alpha: {'estimated' if options.estimate_alpha else options.fixed_alpha}")
    lines.append(f"  Extra response variation: {options.response_extra_var}")

    for attr in ('n_subjects', 'n_covariates', 'n_fixed_effects', 'n_categories_y', 'n_predict'):
        if hasattr(dataset, attr):
            lines.append(f"  {attr}: {getattr(dataset, attr)}")

    lines.append("Hyperparameters:")
    lines.extend(_format_hyper(state.hyper_params))

    lines.append(f"Initial number of clusters: {state.n_clusters_init}")
    lines.append(f"Maximum number of clusters: {state.max_n_clusters}")

    if tuning:
        lines.append("Acceptance rates:")
        for name, record in tuning.items():
            if np.any(record.n_tries > 0):
                rate = ' '.join(f"{r:.3f}" for r in np.ravel(record.acceptance_rate()))
                lines.append(f"  {name}: {rate}")

    lines.append(f"Elapsed time: {elapsed_seconds:.2f} seconds")
    return '\n'.join(lines)
