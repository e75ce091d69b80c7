"""
Covariate component updates.

Discrete covariates (phi):
    active:   phi_cj ~ Dirichlet(a_phi + g_cj * counts_cj)
    inactive: phi_cj ~ Dirichlet(a_phi)

Normal covariates (mu, tau), with selection weight g_cj and
r_i = x_ij - (1 - g_cj) * null_mu_j:
    active:   mu_cj ~ Normal((tau0 mu0 + g tau sum r) / P, 1 / P),
              P = tau0 + n_c g^2 tau
              tau_cj ~ Gamma(shape_tau + n_c / 2, rate_tau + sum (x - mean)^2 / 2)
    inactive: draws from the priors

The discrete update is exact for 0/1 selection indicators; with continuous
selection the counts are down-weighted by rho_j.
"""

import jax
import jax.numpy as jnp
import jax.random as random

from ..model.likelihood import continuous_means
from ..model.params import dirichlet_draw
from .common import active_mask, segment_sum


def _discrete_counts(state, dataset):
    """(C, Jd, K) category counts of the fitting subjects per component."""
    n, Jd = dataset.n_subjects, dataset.n_discrete
    xd = dataset.x[:n, :Jd].astype(jnp.int32)
    one_hot = jax.nn.one_hot(xd, dataset.max_categories)
    return segment_sum(one_hot, state)


def update_for_phi_active(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    Jd = dataset.n_discrete
    counts = _discrete_counts(state, dataset) * state.gamma[:, :Jd, None]
    draws = dirichlet_draw(draw_key, state.hyper_params.a_phi + counts, dataset.category_mask[None])
    phi = jnp.where(active_mask(state)[:, None, None], draws, state.phi)
    return state.replace(phi=phi), key


def gibbs_for_phi_inactive(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    conc = jnp.full(state.phi.shape, state.hyper_params.a_phi)
    draws = dirichlet_draw(draw_key, conc, dataset.category_mask[None])
    phi = jnp.where(active_mask(state)[:, None, None], state.phi, draws)
    return state.replace(phi=phi), key


def gibbs_for_mu_active(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    hyper = state.hyper_params
    n, Jd = dataset.n_subjects, dataset.n_discrete

    g = state.gamma[:, Jd:]
    xc = dataset.x[:n, Jd:]
    n_c = segment_sum(jnp.ones(n), state)[:, None]
    shifted = segment_sum(xc, state) - n_c * (1.0 - g) * dataset.null_mu[None]

    precision = hyper.tau0[None] + n_c * g ** 2 * state.tau
    mean = (hyper.tau0[None] * hyper.mu0[None] + g * state.tau * shifted) / precision
    draws = mean + random.normal(draw_key, mean.shape) / jnp.sqrt(precision)

    mu = jnp.where(active_mask(state)[:, None], draws, state.mu)
    return state.replace(mu=mu), key


def gibbs_for_tau_active(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    hyper = state.hyper_params
    n, Jd = dataset.n_subjects, dataset.n_discrete

    means = continuous_means(state, dataset)[state.z]
    sq = segment_sum((dataset.x[:n, Jd:] - means) ** 2, state)
    n_c = segment_sum(jnp.ones(n), state)[:, None]

    shape = hyper.shape_tau + 0.5 * n_c
    rate = hyper.rate_tau[None] + 0.5 * sq
    draws = random.gamma(draw_key, jnp.broadcast_to(shape, rate.shape)) / rate

    tau = jnp.where(active_mask(state)[:, None], draws, state.tau)
    return state.replace(tau=tau), key


def gibbs_for_mu_inactive(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    hyper = state.hyper_params
    draws = hyper.mu0[None] + random.normal(draw_key, state.mu.shape) / jnp.sqrt(hyper.tau0)[None]
    mu = jnp.where(active_mask(state)[:, None], state.mu, draws)
    return state.replace(mu=mu), key


def gibbs_for_tau_inactive(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    hyper = state.hyper_params
    draws = random.gamma(draw_key, hyper.shape_tau, shape=state.tau.shape) / hyper.rate_tau[None]
    tau = jnp.where(active_mask(state)[:, None], state.tau, draws)
    return state.replace(tau=tau), key
