"""
Variable selection updates.

Binary selection: each component c carries an indicator gamma_cj per
covariate with P(gamma_cj = 1) = rho_j. Continuous selection: covariate j
is mixed with its null distribution at weight rho_j in every component
(gamma_cj = rho_j).

rho_j has a spike at zero (omega_j = 0) and a Beta(a_rho, b_rho) slab
(omega_j = 1), each with prior probability 1/2.
"""

import jax
import jax.numpy as jnp
import jax.random as random
from jax.scipy.special import xlogy
from jax.scipy.stats import beta as beta_dist

from ..model.likelihood import allocated_covariate_terms
from ..options import VarSelectType
from .common import mh_accept, active_mask, segment_sum


def gibbs_for_gamma_active(state, tuning, dataset, key):
    """Draw each active component's indicators from their full conditional."""
    key, draw_key = random.split(key)
    n = dataset.n_subjects
    C, J = state.gamma.shape

    included = segment_sum(allocated_covariate_terms(state, dataset, jnp.ones((C, J)))[:n], state)
    excluded = segment_sum(allocated_covariate_terms(state, dataset, jnp.zeros((C, J)))[:n], state)

    log_odds = (jnp.log(state.rho) - jnp.log1p(-state.rho))[None] + included - excluded
    draws = random.bernoulli(draw_key, jax.nn.sigmoid(log_odds)).astype(state.gamma.dtype)

    gamma = jnp.where(active_mask(state)[:, None], draws, state.gamma)
    return state.replace(gamma=gamma), key


def gibbs_for_gamma_inactive(state, tuning, dataset, key):
    """gamma_cj ~ Bernoulli(rho_j) for each inactive component."""
    key, draw_key = random.split(key)
    draws = random.bernoulli(draw_key, state.rho[None], state.gamma.shape).astype(state.gamma.dtype)
    gamma = jnp.where(active_mask(state)[:, None], state.gamma, draws)
    return state.replace(gamma=gamma), key


def _column_log_lik(state, dataset, rho):
    """(J,) log likelihood of the quantities rho_j governs."""
    if state.options.var_select_type == VarSelectType.CONTINUOUS:
        gamma = jnp.broadcast_to(rho[None], state.gamma.shape)
        return jnp.sum(allocated_covariate_terms(state, dataset, gamma)[:dataset.n_subjects], axis=0)
    g = state.gamma
    return jnp.sum(xlogy(g, rho[None]) + xlogy(1.0 - g, 1.0 - rho[None]), axis=0)


def mh_for_rho_omega(state, tuning, dataset, key):
    """
    Two moves per covariate:
    1. Flip omega_j: from the spike, propose rho_j from its Beta prior; from
       the slab, propose rho_j = 0. The prior and proposal densities cancel,
       leaving the likelihood ratio.
    2. For covariates in the slab, an adaptive random walk on rho_j.
    """
    hyper = state.hyper_params
    rho, omega = state.rho, state.omega

    # Move 1: spike <-> slab
    key, birth_key = random.split(key)
    birth = random.beta(birth_key, hyper.a_rho, hyper.b_rho, shape=rho.shape)
    flipped_rho = jnp.where(omega == 1, 0.0, birth)
    log_ratio = _column_log_lik(state, dataset, flipped_rho) - _column_log_lik(state, dataset, rho)
    accepted, key = mh_accept(key, log_ratio)
    rho = jnp.where(accepted, flipped_rho, rho)
    omega = jnp.where(accepted, 1 - omega, omega)

    # Move 2: random walk inside the slab
    key, step_key = random.split(key)
    proposal = rho + tuning.std_dev * random.normal(step_key, rho.shape)
    in_slab = omega == 1
    valid = in_slab & (proposal > 0) & (proposal < 1)
    safe = jnp.where(valid, proposal, 0.5)
    log_ratio = (_column_log_lik(state, dataset, safe) + beta_dist.logpdf(safe, hyper.a_rho, hyper.b_rho)
                 - _column_log_lik(state, dataset, rho)
                 - beta_dist.logpdf(jnp.where(in_slab, rho, 0.5), hyper.a_rho, hyper.b_rho))
    accepted, key = mh_accept(key, jnp.where(valid, log_ratio, -jnp.inf))
    accepted = accepted & in_slab
    rho = jnp.where(accepted, proposal, rho)

    tuning.record(accepted.astype(jnp.int32), tries=in_slab.astype(jnp.int32))
    tuning.adapt()

    changes = dict(rho=rho, omega=omega)
    if state.options.var_select_type == VarSelectType.CONTINUOUS:
        changes['gamma'] = jnp.broadcast_to(rho[None], state.gamma.shape)
    return state.replace(**changes), key
