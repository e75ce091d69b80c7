"""
Allocation and label-switching updates.

mh_for_labels runs two reversible moves that help the sampler move between
label orderings of the same clustering:
1. Swap the labels of two occupied components, stick fractions fixed.
   log ratio = (n_a - n_b) * (log psi_b - log psi_a)
2. Swap the labels of an adjacent active pair (c, c+1) together with their
   stick fractions.
   log ratio = n_c * log(1 - v_{c+1}) - n_{c+1} * log(1 - v_c)

gibbs_for_z draws every allocation from its full conditional. With a slice
sampler only components whose weight (dependent) or fixed slice level
(independent) exceeds the subject's slice variable are candidates.
Prediction subjects are allocated from the covariates alone.
"""

import numpy as np
import jax.numpy as jnp
import jax.random as random

from ..model.likelihood import covariate_log_lik_matrix, linear_predictor, response_log_lik
from ..options import SamplerType
from .common import mh_accept, slice_xi, swap_clusters


def mh_for_labels(state, tuning, dataset, key):
    # Move 1: two occupied components
    key, pick_key = random.split(key)
    counts = np.asarray(state.counts())
    occupied = np.flatnonzero(counts)
    if occupied.size >= 2:
        pair = random.choice(pick_key, jnp.asarray(occupied), (2,), replace=False)
        a, b = int(pair[0]), int(pair[1])
        log_psi = state.log_psi()
        log_ratio = (counts[a] - counts[b]) * (log_psi[b] - log_psi[a])
        accepted, key = mh_accept(key, log_ratio)
        if accepted:
            state = swap_clusters(state, a, b)

    # Move 2: adjacent pair, weights travel with the labels
    key, pick_key = random.split(key)
    n_active = state.n_active()
    last = n_active - 1
    if state.options.sampler_type == SamplerType.TRUNCATED:
        # The closing stick cannot move
        last = min(last, state.max_n_clusters - 2)
    if last >= 1:
        c = int(random.randint(pick_key, (), 0, last))
        counts = np.asarray(state.counts())
        log_ratio = counts[c] * jnp.log1p(-state.v[c + 1]) - counts[c + 1] * jnp.log1p(-state.v[c])
        accepted, key = mh_accept(key, log_ratio)
        if accepted:
            state = swap_clusters(state, c, c + 1, swap_v=True)

    return state, key


def gibbs_for_z(state, tuning, dataset, key):
    key, fit_key, predict_key = random.split(key, 3)
    n = dataset.n_subjects

    log_x = covariate_log_lik_matrix(state, dataset)
    log_psi = state.log_psi()

    logits = log_x[:n]
    if state.options.include_response:
        theta = jnp.broadcast_to(state.theta[None], (n,) + state.theta.shape)
        logits = logits + response_log_lik(state, dataset, linear_predictor(state, dataset, theta))

    sampler = state.options.sampler_type
    if sampler == SamplerType.TRUNCATED:
        logits = logits + log_psi[None]
    elif sampler == SamplerType.SLICE_INDEPENDENT:
        xi = slice_xi(state)
        logits = jnp.where(state.u[:, None] < xi[None], logits + (log_psi - jnp.log(xi))[None], -jnp.inf)
    else:
        logits = jnp.where(state.u[:, None] < jnp.exp(log_psi)[None], logits, -jnp.inf)

    z = random.categorical(fit_key, logits, axis=-1).astype(state.z.dtype)
    changes = dict(z=z)

    if dataset.n_predict:
        predict_logits = log_x[n:] + log_psi[None]
        changes['z_predict'] = random.categorical(predict_key, predict_logits, axis=-1).astype(
            state.z_predict.dtype)

    return state.replace(**changes), key
