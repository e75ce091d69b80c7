"""
Mixture weight updates.

gibbs_for_v_active   - stick fractions of the active components
gibbs_for_v_inactive - stick fractions of the inactive components (prior)
gibbs_for_u          - slice variables (slice samplers only)
mh_for_alpha         - adaptive random walk on the concentration parameter

The active stick fractions are drawn from their conditional given the
allocations alone; the slice variables are redrawn afterwards, before the
allocations use them.
"""

import jax.numpy as jnp
import jax.random as random
from jax.scipy.stats import beta as beta_dist
from jax.scipy.stats import gamma as gamma_dist

from ..model.likelihood import active_sticks
from ..options import SamplerType
from .common import mh_accept, clip_unit, active_mask, slice_xi, finalise_sticks


def gibbs_for_v_active(state, tuning, dataset, key):
    """v_c ~ Beta(1 + n_c, alpha + n_{>c}) for each active component."""
    key, draw_key = random.split(key)
    counts = state.counts()
    later = jnp.cumsum(counts[::-1])[::-1] - counts

    draws = clip_unit(random.beta(draw_key, 1.0 + counts, state.alpha + later))
    v = jnp.where(active_mask(state), draws, state.v)
    return state.replace(v=finalise_sticks(state, v)), key


def gibbs_for_v_inactive(state, tuning, dataset, key):
    """v_c ~ Beta(1, alpha) for each inactive component."""
    key, draw_key = random.split(key)
    draws = clip_unit(random.beta(draw_key, 1.0, state.alpha, shape=state.v.shape))
    v = jnp.where(active_mask(state), state.v, draws)
    return state.replace(v=finalise_sticks(state, v)), key


def gibbs_for_u(state, tuning, dataset, key):
    """
    u_i ~ Uniform(0, psi_{z_i}) for the dependent slice sampler, or
    u_i ~ Uniform(0, xi_{z_i}) for the independent one.
    """
    key, draw_key = random.split(key)
    if state.options.sampler_type == SamplerType.SLICE_INDEPENDENT:
        upper = slice_xi(state)[state.z]
    else:
        upper = jnp.exp(state.log_psi())[state.z]
    u = random.uniform(draw_key, state.z.shape) * upper
    return state.replace(u=u), key


def mh_for_alpha(state, tuning, dataset, key):
    """Random walk on alpha with a Gamma prior and the active sticks as data."""
    hyper = state.hyper_params
    sticks = active_sticks(state)

    def log_target(alpha):
        return (gamma_dist.logpdf(alpha, hyper.shape_alpha, scale=1.0 / hyper.rate_alpha)
                + jnp.sum(beta_dist.logpdf(sticks, 1.0, alpha)))

    key, prop_key = random.split(key)
    proposal = state.alpha + tuning.std_dev[0] * random.normal(prop_key)
    log_ratio = jnp.where(
        proposal > 0,
        log_target(jnp.maximum(proposal, 1e-10)) - log_target(state.alpha),
        -jnp.inf,
    )
    accepted, key = mh_accept(key, log_ratio)

    tuning.record(int(accepted), index=0)
    tuning.adapt()
    alpha = jnp.where(accepted, proposal, state.alpha)
    return state.replace(alpha=alpha), key
