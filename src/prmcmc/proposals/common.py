"""
Common utilities for update rules.

Every update rule has the signature

    fn(state, tuning, dataset, key) -> (state, key)

where `tuning` is the rule's own TuningRecord (None for rules that are not
adaptive). Rules split the key they are given and return the carried half.

Functions:
    mh_accept: Metropolis-Hastings accept/reject for one or many proposals
    clip_unit: Keep stick fractions strictly inside (0, 1)
    active_mask: Boolean mask of the active components
    segment_sum: Per-component sums over subjects
    slice_xi: Fixed slice sequence for the independent slice sampler
    swap_clusters: Exchange two component labels
"""

import numpy as np
import jax
import jax.numpy as jnp
import jax.random as random

from ..options import SamplerType


def mh_accept(key, log_ratio):
    """
    Accept where log(U) < log_ratio, elementwise.

    NaN ratios are rejected.

    Returns:
        (accepted boolean array, new_key)
    """
    new_key, accept_key = random.split(key)
    log_u = jnp.log(random.uniform(accept_key, jnp.shape(log_ratio)))
    accepted = jnp.where(jnp.isnan(log_ratio), False, log_u < log_ratio)
    return accepted, new_key


def clip_unit(v):
    eps = jnp.finfo(v.dtype).eps
    return jnp.clip(v, eps, 1.0 - eps)


def active_mask(state):
    """(C,) True for components 0..n_active-1."""
    return jnp.arange(state.max_n_clusters) < state.n_active()


def segment_sum(values, state):
    """Sum per-subject values (fitting subjects) into their components."""
    return jax.ops.segment_sum(values, state.z, num_segments=state.max_n_clusters)


def slice_xi(state):
    """(C,) geometric sequence (1 - kappa) * kappa**c."""
    kappa = state.hyper_params.slice_kappa
    return (1.0 - kappa) * kappa ** jnp.arange(state.max_n_clusters)


def finalise_sticks(state, v):
    """The truncated representation closes the stick at the last component."""
    if state.options.sampler_type == SamplerType.TRUNCATED:
        v = v.at[state.max_n_clusters - 1].set(1.0)
    return v


def swap_clusters(state, a: int, b: int, swap_v: bool = False):
    """
    Exchange component labels a and b.

    Component parameters and allocations move with the label; stick
    fractions stay in place unless swap_v is set.
    """
    perm = np.arange(state.max_n_clusters)
    perm[a], perm[b] = b, a
    perm = jnp.asarray(perm)

    changes = dict(
        z=perm[state.z],
        z_predict=perm[state.z_predict],
        phi=state.phi[perm],
        mu=state.mu[perm],
        tau=state.tau[perm],
        gamma=state.gamma[perm],
        theta=state.theta[perm],
    )
    if swap_v:
        changes['v'] = state.v[perm]
    return state.replace(**changes)
