"""
Outcome model updates.

mh_for_theta_active      - adaptive random walk on each active component's
                           coefficients, accepted per component
gibbs_for_theta_inactive - prior draws for the inactive components
mh_for_beta              - adaptive random walk on each fixed effect
mh_for_lambda            - adaptive random walk on the subject-level extra
                           variation, accepted per subject
gibbs_for_tau_epsilon    - Gamma draw for the extra-variation precision
gibbs_for_sigma_sq_y     - inverse-Gamma draw for the Normal outcome variance
"""

import jax.numpy as jnp
import jax.random as random
from jax.scipy.stats import norm

from ..model.likelihood import linear_predictor, subject_response_log_lik
from .common import mh_accept, active_mask, segment_sum


def mh_for_theta_active(state, tuning, dataset, key):
    hyper = state.hyper_params
    active = active_mask(state)
    n_active = int(jnp.sum(active))

    for k in range(state.theta.shape[1]):
        key, prop_key = random.split(key)
        proposal = state.theta.at[:, k].add(tuning.std_dev[k] * random.normal(prop_key, active.shape))

        current = (segment_sum(subject_response_log_lik(state, dataset), state)
                   + norm.logpdf(state.theta[:, k], hyper.mu_theta, hyper.sigma_theta))
        proposed = (segment_sum(subject_response_log_lik(state, dataset, proposal), state)
                    + norm.logpdf(proposal[:, k], hyper.mu_theta, hyper.sigma_theta))

        accepted, key = mh_accept(key, proposed - current)
        accepted = accepted & active
        state = state.replace(theta=jnp.where(accepted[:, None], proposal, state.theta))
        tuning.record(int(jnp.sum(accepted)), tries=n_active, index=k)

    tuning.adapt()
    return state, key


def gibbs_for_theta_inactive(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    hyper = state.hyper_params
    draws = hyper.mu_theta + hyper.sigma_theta * random.normal(draw_key, state.theta.shape)
    theta = jnp.where(active_mask(state)[:, None], state.theta, draws)
    return state.replace(theta=theta), key


def mh_for_beta(state, tuning, dataset, key):
    hyper = state.hyper_params
    current = jnp.sum(subject_response_log_lik(state, dataset))

    n_fixed, n_coef = state.beta.shape
    for f in range(n_fixed):
        for k in range(n_coef):
            key, prop_key = random.split(key)
            beta = state.beta.at[f, k].add(tuning.std_dev[f, k] * random.normal(prop_key))
            candidate = state.replace(beta=beta)
            proposed = jnp.sum(subject_response_log_lik(candidate, dataset))

            log_ratio = (proposed + norm.logpdf(beta[f, k], hyper.mu_beta, hyper.sigma_beta)
                         - current - norm.logpdf(state.beta[f, k], hyper.mu_beta, hyper.sigma_beta))
            accepted, key = mh_accept(key, log_ratio)
            if accepted:
                state, current = candidate, proposed
            tuning.record(int(accepted), index=(f, k))

    tuning.adapt()
    return state, key


def mh_for_lambda(state, tuning, dataset, key):
    key, prop_key = random.split(key)
    sd = 1.0 / jnp.sqrt(state.tau_epsilon)
    proposal = state.lambda_ + tuning.std_dev[0] * random.normal(prop_key, state.lambda_.shape)

    current = subject_response_log_lik(state, dataset) + norm.logpdf(state.lambda_, 0.0, sd)
    candidate = state.replace(lambda_=proposal)
    proposed = subject_response_log_lik(candidate, dataset) + norm.logpdf(proposal, 0.0, sd)

    accepted, key = mh_accept(key, proposed - current)
    tuning.record(int(jnp.sum(accepted)), tries=accepted.size, index=0)
    tuning.adapt()
    return state.replace(lambda_=jnp.where(accepted, proposal, state.lambda_)), key


def gibbs_for_tau_epsilon(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    hyper = state.hyper_params
    shape = hyper.shape_tau_epsilon + 0.5 * state.lambda_.size
    rate = hyper.rate_tau_epsilon + 0.5 * jnp.sum(state.lambda_ ** 2)
    return state.replace(tau_epsilon=random.gamma(draw_key, shape) / rate), key


def gibbs_for_sigma_sq_y(state, tuning, dataset, key):
    key, draw_key = random.split(key)
    hyper = state.hyper_params
    eta = linear_predictor(state, dataset, state.theta[state.z])[:, 0]
    shape = hyper.shape_sigma_sq_y + 0.5 * dataset.n_subjects
    rate = hyper.rate_sigma_sq_y + 0.5 * jnp.sum((dataset.y - eta) ** 2)
    precision = random.gamma(draw_key, shape) / rate
    return state.replace(sigma_sq_y=1.0 / precision), key
