"""
Proposal Composition

Decides which update rules a run registers, in which order, and from which
sweep each one becomes active. The decision is a pure function of the run
options and the dataset shape, expressed as an ordered table of
CompositionRule entries rather than nested conditionals.

Order matters: rules run in table order on every sweep, and the shared PRNG
key is threaded through them in that order.

    from prmcmc.composition import compose_proposals
    from prmcmc.proposals import UPDATE_LIBRARY

    specs = compose_proposals(options, dataset, UPDATE_LIBRARY)
"""

from dataclasses import dataclass
from typing import Callable, List, Mapping

from .error_handling import ConfigurationError
from .options import CovariateType, OutcomeType, SamplerType, VarSelectType
from .proposal_specs import ProposalSpec, UpdateKind

import logging
logger = logging.getLogger('prmcmc')


@dataclass(frozen=True)
class CompositionRule:
    """
    One row of the composition table.

    Attributes:
        name: Registry name, also the key into the update library
        kind: UpdateKind tag given to the resulting ProposalSpec
        applies: Predicate (options, dataset) -> bool
        deferred: If True, the rule starts one tenth of the way into burn-in
    """
    name: str
    kind: UpdateKind
    applies: Callable
    deferred: bool = False


def deferred_first_sweep(options) -> int:
    """First sweep for rules held back until the chain has settled a little."""
    return 1 + options.n_burn // 10


# ============================================================================
# PREDICATES
# ============================================================================

def _always(options, dataset):
    return True


def _discrete_covariates(options, dataset):
    return options.covariate_type in (CovariateType.DISCRETE, CovariateType.MIXED)


def _normal_covariates(options, dataset):
    return options.covariate_type in (CovariateType.NORMAL, CovariateType.MIXED)


def _selection_indicators(options, dataset):
    return options.var_select_type not in (VarSelectType.NONE, VarSelectType.CONTINUOUS)


def _variable_selection(options, dataset):
    return options.var_select_type != VarSelectType.NONE


def _response(options, dataset):
    return options.include_response


def _slice_sampler(options, dataset):
    return options.sampler_type != SamplerType.TRUNCATED


def _estimate_alpha(options, dataset):
    return options.fixed_alpha < 0


def _fixed_effects(options, dataset):
    return options.include_response and getattr(dataset, 'n_fixed_effects', 0) > 0


def _extra_variation(options, dataset):
    return options.include_response and options.response_extra_var


def _normal_outcome(options, dataset):
    return options.outcome_type == OutcomeType.NORMAL


# ============================================================================
# COMPOSITION TABLE
# ============================================================================

G = UpdateKind.GIBBS
MH = UpdateKind.METROPOLIS_HASTINGS
AMH = UpdateKind.ADAPTIVE_MH

COMPOSITION_RULES = (
    # Active components
    CompositionRule('gibbs_for_v_active', G, _always),
    CompositionRule('update_for_phi_active', G, _discrete_covariates),
    CompositionRule('gibbs_for_mu_active', G, _normal_covariates),
    CompositionRule('gibbs_for_tau_active', G, _normal_covariates),
    CompositionRule('gibbs_for_gamma_active', G, _selection_indicators, deferred=True),
    CompositionRule('mh_for_theta_active', AMH, _response),
    # Label switching and slice variables
    CompositionRule('mh_for_labels', MH, _always),
    CompositionRule('gibbs_for_u', G, _slice_sampler),
    CompositionRule('mh_for_alpha', AMH, _estimate_alpha),
    # Inactive components
    CompositionRule('gibbs_for_v_inactive', G, _always),
    CompositionRule('gibbs_for_phi_inactive', G, _discrete_covariates),
    CompositionRule('gibbs_for_mu_inactive', G, _normal_covariates),
    CompositionRule('gibbs_for_tau_inactive', G, _normal_covariates),
    CompositionRule('gibbs_for_gamma_inactive', G, _selection_indicators, deferred=True),
    CompositionRule('gibbs_for_theta_inactive', G, _response),
    # Global response parameters
    CompositionRule('mh_for_beta', AMH, _fixed_effects),
    CompositionRule('mh_for_lambda', AMH, _extra_variation),
    CompositionRule('gibbs_for_tau_epsilon', G, _extra_variation),
    CompositionRule('mh_for_rho_omega', AMH, _variable_selection, deferred=True),
    CompositionRule('gibbs_for_sigma_sq_y', G, _normal_outcome),
    # Allocations always last
    CompositionRule('gibbs_for_z', G, _always),
)


def applicable_rules(options, dataset) -> List[CompositionRule]:
    """Rules that apply to this run, in registration order."""
    return [rule for rule in COMPOSITION_RULES if rule.applies(options, dataset)]


def proposal_names(options, dataset) -> List[str]:
    return [rule.name for rule in applicable_rules(options, dataset)]


def compose_proposals(options, dataset, library: Mapping[str, Callable]) -> List[ProposalSpec]:
    """
    Build the ordered proposal list for a run.

    Args:
        options: SamplerOptions for the run
        dataset: Dataset exposing n_covariates, n_fixed_effects, n_categories_y
        library: Mapping from registry name to update callable

    Returns:
        List of ProposalSpec in execution order

    Raises:
        ConfigurationError: If an applicable rule has no entry in the library
    """
    rules = applicable_rules(options, dataset)

    missing = [rule.name for rule in rules if rule.name not in library]
    if missing:
        raise ConfigurationError(
            f"Update library has no implementation for: {', '.join(missing)}"
        )

    delayed = deferred_first_sweep(options)
    specs = [
        ProposalSpec(
            name=rule.name,
            update_fn=library[rule.name],
            first_sweep=delayed if rule.deferred else 1,
            kind=rule.kind,
        )
        for rule in rules
    ]

    logger.debug(f"Composed {len(specs)} proposals: {[s.name for s in specs]}")
    return specs

