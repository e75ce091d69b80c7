"""
Profile regression densities.

Covariates:
    Discrete column j in cluster c has category probabilities
        g_cj * phi_cj + (1 - g_cj) * null_phi_j
    and continuous column j is Normal with mean
        g_cj * mu_cj + (1 - g_cj) * null_mu_j
    and precision tau_cj, where g is the selection weight (the 0/1 indicator
    gamma for binary selection, rho_j for continuous selection, 1 without
    selection).

Response (linear predictor eta = theta_z + w beta [+ lambda] [+ log offset]):
    Bernoulli/Binomial: logit link
    Poisson: log link
    Normal: identity link with variance sigma_sq_y
    Categorical: multinomial logit with category 0 as baseline
"""

import jax
import jax.numpy as jnp
from jax.scipy.special import gammaln, logsumexp, xlogy
from jax.scipy.stats import beta as beta_dist
from jax.scipy.stats import gamma as gamma_dist
from jax.scipy.stats import norm

from ..options import OutcomeType, SamplerType, VarSelectType


# ============================================================================
# COVARIATES
# ============================================================================

def discrete_log_probs(state, dataset, gamma=None):
    """(C, Jd, K) log category probabilities with selection mixed in."""
    gamma = state.gamma if gamma is None else gamma
    g = gamma[:, :dataset.n_discrete, None]
    probs = g * state.phi + (1.0 - g) * dataset.null_phi[None]
    return jnp.log(probs)


def continuous_means(state, dataset, gamma=None):
    """(C, Jc) component means with selection mixed in."""
    gamma = state.gamma if gamma is None else gamma
    g = gamma[:, dataset.n_discrete:]
    return g * state.mu + (1.0 - g) * dataset.null_mu[None]


def covariate_log_lik_matrix(state, dataset, x=None):
    """
    Log density of each row's covariates under every component.

    Returns:
        (rows, C) array
    """
    x = dataset.x if x is None else x
    Jd = dataset.n_discrete
    total = jnp.zeros((x.shape[0], state.max_n_clusters))

    if Jd:
        logp = discrete_log_probs(state, dataset)
        xd = x[:, :Jd].astype(jnp.int32)
        # (C, rows, Jd)
        vals = logp[:, jnp.arange(Jd)[None, :], xd]
        total = total + vals.sum(axis=-1).T

    if dataset.n_continuous:
        means = continuous_means(state, dataset)
        sd = 1.0 / jnp.sqrt(state.tau)
        vals = norm.logpdf(x[:, None, Jd:], means[None], sd[None])
        total = total + vals.sum(axis=-1)

    return total


def allocated_covariate_terms(state, dataset, gamma=None):
    """
    Per-column log density of each subject's covariates under its own component.

    Returns:
        (n_total, J) array; fitting subjects first, then prediction subjects
    """
    z_all = state.all_allocations()
    x = dataset.x
    Jd = dataset.n_discrete
    columns = []

    if Jd:
        logp = discrete_log_probs(state, dataset, gamma)
        xd = x[:, :Jd].astype(jnp.int32)
        columns.append(logp[z_all[:, None], jnp.arange(Jd)[None, :], xd])

    if dataset.n_continuous:
        means = continuous_means(state, dataset, gamma)[z_all]
        sd = 1.0 / jnp.sqrt(state.tau[z_all])
        columns.append(norm.logpdf(x[:, Jd:], means, sd))

    return jnp.concatenate(columns, axis=1)


# ============================================================================
# RESPONSE
# ============================================================================

def linear_predictor(state, dataset, theta_rows):
    """
    Linear predictor for the outcome.

    Args:
        theta_rows: (n, Q) cluster coefficients per subject, or (n, C, Q) for
            every subject/component pair

    Returns:
        Array shaped like theta_rows
    """
    base = dataset.w @ state.beta
    if state.options.response_extra_var:
        base = base + state.lambda_[:, None]
    if dataset.log_offset is not None:
        base = base + dataset.log_offset[:, None]
    if theta_rows.ndim == 3:
        base = base[:, None, :]
    return theta_rows + base


def _expand(values, eta):
    """Reshape a per-subject vector to broadcast against eta[..., 0]."""
    return values.reshape(values.shape + (1,) * (eta.ndim - 2))


def response_log_lik(state, dataset, eta):
    """
    Outcome log likelihood per subject.

    Args:
        eta: (n, ..., Q) linear predictor

    Returns:
        (n, ...) array
    """
    y = _expand(dataset.y, eta)
    outcome = state.options.outcome_type

    if outcome == OutcomeType.CATEGORICAL:
        full = jnp.concatenate([jnp.zeros(eta.shape[:-1] + (1,)), eta], axis=-1)
        idx = jnp.broadcast_to(y, eta.shape[:-1]).astype(jnp.int32)[..., None]
        picked = jnp.take_along_axis(full, idx, axis=-1)[..., 0]
        return picked - logsumexp(full, axis=-1)

    e = eta[..., 0]
    if outcome == OutcomeType.BERNOULLI:
        return y * e - jax.nn.softplus(e)
    if outcome == OutcomeType.BINOMIAL:
        trials = _expand(dataset.n_trials, eta)
        log_choose = gammaln(trials + 1) - gammaln(y + 1) - gammaln(trials - y + 1)
        return log_choose + y * e - trials * jax.nn.softplus(e)
    if outcome == OutcomeType.POISSON:
        return y * e - jnp.exp(e) - gammaln(y + 1)
    if outcome == OutcomeType.NORMAL:
        return norm.logpdf(y, e, jnp.sqrt(state.sigma_sq_y))
    raise ValueError(f"Unsupported outcome type: {outcome}")


def subject_response_log_lik(state, dataset, theta=None):
    """(n,) outcome log likelihood at each subject's allocated component."""
    theta = state.theta if theta is None else theta
    return response_log_lik(state, dataset, linear_predictor(state, dataset, theta[state.z]))


# ============================================================================
# JOINT DENSITY
# ============================================================================

def active_sticks(state):
    """Stick fractions that carry a Beta(1, alpha) prior."""
    n_active = state.n_active()
    if state.options.sampler_type == SamplerType.TRUNCATED:
        n_active = min(n_active, state.max_n_clusters - 1)
    return state.v[:n_active]


def log_prior(state, dataset):
    """Log prior density of the active components and global parameters."""
    opts = state.options
    hyper = state.hyper_params
    n_active = state.n_active()
    lp = jnp.sum(beta_dist.logpdf(active_sticks(state), 1.0, state.alpha))

    if opts.estimate_alpha:
        lp += gamma_dist.logpdf(state.alpha, hyper.shape_alpha, scale=1.0 / hyper.rate_alpha)

    if dataset.n_discrete:
        mask = dataset.category_mask[None]
        phi = state.phi[:n_active]
        k = jnp.sum(mask, axis=-1)
        lp += jnp.sum(jnp.where(mask, xlogy(hyper.a_phi - 1.0, jnp.where(mask, phi, 1.0)), 0.0))
        lp += n_active * jnp.sum(gammaln(k * hyper.a_phi) - k * gammaln(hyper.a_phi))

    if dataset.n_continuous:
        lp += jnp.sum(norm.logpdf(state.mu[:n_active], hyper.mu0[None],
                                  1.0 / jnp.sqrt(hyper.tau0)[None]))
        lp += jnp.sum(gamma_dist.logpdf(state.tau[:n_active], hyper.shape_tau,
                                        scale=1.0 / hyper.rate_tau[None]))

    if opts.var_select_type != VarSelectType.NONE:
        on = state.omega == 1
        lp += jnp.sum(jnp.where(on, beta_dist.logpdf(jnp.where(on, state.rho, 0.5),
                                                      hyper.a_rho, hyper.b_rho), 0.0))
        lp += state.rho.size * jnp.log(0.5)

    if opts.include_response:
        lp += jnp.sum(norm.logpdf(state.theta[:n_active], hyper.mu_theta, hyper.sigma_theta))
        lp += jnp.sum(norm.logpdf(state.beta, hyper.mu_beta, hyper.sigma_beta))
        if opts.response_extra_var:
            lp += jnp.sum(norm.logpdf(state.lambda_, 0.0, 1.0 / jnp.sqrt(state.tau_epsilon)))
            lp += gamma_dist.logpdf(state.tau_epsilon, hyper.shape_tau_epsilon,
                                    scale=1.0 / hyper.rate_tau_epsilon)
        if opts.outcome_type == OutcomeType.NORMAL:
            # Inverse gamma on the variance
            precision = 1.0 / state.sigma_sq_y
            lp += gamma_dist.logpdf(precision, hyper.shape_sigma_sq_y,
                                    scale=1.0 / hyper.rate_sigma_sq_y) - 2.0 * jnp.log(state.sigma_sq_y)
    return lp


def log_posterior(state, dataset):
    """
    Joint log density of the current state (up to a constant).

    Covariate and outcome likelihood of the fitting subjects, allocation
    probabilities under the stick-breaking weights, and the priors.
    """
    n = dataset.n_subjects
    ll = jnp.sum(allocated_covariate_terms(state, dataset)[:n])
    if state.options.include_response:
        ll += jnp.sum(subject_response_log_lik(state, dataset))
    ll += jnp.sum(state.log_psi()[state.z])
    return ll + log_prior(state, dataset)
