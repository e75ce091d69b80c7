"""
Profile regression chain state and hyperparameters.

The mixture is held in a truncated stick-breaking representation with a
fixed capacity of max_n_clusters components. Cluster-indexed arrays always
have that leading dimension; components 0..n_active()-1 are "active" (at or
below the highest occupied label) and the rest are "inactive" and carry
draws from their priors.

Covariate columns are ordered discrete first, then continuous, matching
ProfileData.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np
import jax.numpy as jnp
import jax.random as random

from ..error_handling import ConfigurationError
from ..hyper_config import load_hyper_config
from ..options import OutcomeType, SamplerType, VarSelectType

import logging
logger = logging.getLogger('prmcmc')


# ============================================================================
# HYPERPARAMETERS
# ============================================================================

@dataclass(frozen=True)
class HyperParams:
    """
    Prior hyperparameters.

    Fields left as None are filled from the data by resolve():
    mu0 (observed covariate means), tau0 (inverse observed variances) and
    rate_tau (shape_tau times the observed variances).
    """
    shape_alpha: float = 2.0
    rate_alpha: float = 1.0
    a_phi: float = 1.0
    mu0: Optional[Sequence[float]] = None
    tau0: Optional[Sequence[float]] = None
    shape_tau: float = 2.0
    rate_tau: Optional[Sequence[float]] = None
    mu_theta: float = 0.0
    sigma_theta: float = 2.5
    mu_beta: float = 0.0
    sigma_beta: float = 2.5
    shape_tau_epsilon: float = 5.0
    rate_tau_epsilon: float = 0.5
    shape_sigma_sq_y: float = 2.5
    rate_sigma_sq_y: float = 2.5
    a_rho: float = 0.5
    b_rho: float = 0.5
    slice_kappa: float = 0.5

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'HyperParams':
        unknown = [k for k in config if k not in cls.__dataclass_fields__]
        if unknown:
            raise ConfigurationError(f"Unknown hyperparameters: {unknown}")
        return cls(**config)

    def resolve(self, dataset) -> 'HyperParams':
        """Fill data-dependent defaults for the continuous covariates."""
        cont = np.asarray(dataset.x)[:dataset.n_subjects, dataset.n_discrete:]
        observed = ~dataset.missing[:dataset.n_subjects, dataset.n_discrete:]
        var = np.ones(dataset.n_continuous)
        for j in range(dataset.n_continuous):
            col = cont[observed[:, j], j]
            if col.size > 1 and np.var(col) > 0:
                var[j] = np.var(col)

        def as_array(value, fallback):
            if value is None:
                return jnp.asarray(fallback, dtype=float)
            return jnp.broadcast_to(jnp.asarray(value, dtype=float), (dataset.n_continuous,))

        return dataclasses.replace(
            self,
            mu0=as_array(self.mu0, np.asarray(dataset.null_mu)),
            tau0=as_array(self.tau0, 1.0 / var),
            rate_tau=as_array(self.rate_tau, self.shape_tau * var),
        )


def load_hyper_params(options) -> HyperParams:
    """HyperParams from options.hyper_file, or the defaults when none is given."""
    if options.hyper_file is None:
        return HyperParams()
    return HyperParams.from_dict(load_hyper_config(options.hyper_file))


# ============================================================================
# CHAIN STATE
# ============================================================================

@dataclass(frozen=True)
class ProfileParams:
    """
    One state of the profile regression chain.

    Shapes (C = max_n_clusters, J = covariates, Jd/Jc = discrete/continuous,
    K = largest category count, F = fixed effects, Q = outcome coefficients):
        v (C,), z (n,), z_predict (n_predict,), u (n,)
        phi (C, Jd, K), mu (C, Jc), tau (C, Jc)
        gamma (C, J), rho (J,), omega (J,)
        theta (C, Q), beta (F, Q), lambda_ (n,)
    """
    v: jnp.ndarray
    alpha: jnp.ndarray
    z: jnp.ndarray
    z_predict: jnp.ndarray
    u: jnp.ndarray
    phi: jnp.ndarray
    mu: jnp.ndarray
    tau: jnp.ndarray
    gamma: jnp.ndarray
    rho: jnp.ndarray
    omega: jnp.ndarray
    theta: jnp.ndarray
    beta: jnp.ndarray
    lambda_: jnp.ndarray
    tau_epsilon: jnp.ndarray
    sigma_sq_y: jnp.ndarray
    options: Any
    hyper_params: HyperParams
    n_clusters_init: int
    max_n_clusters: int

    def replace(self, **changes) -> 'ProfileParams':
        return dataclasses.replace(self, **changes)

    def log_psi(self) -> jnp.ndarray:
        """Log mixture weights from the stick-breaking fractions."""
        log_v = jnp.log(self.v)
        # The last remainder is never used, so a final stick of 1 is harmless
        log_1mv = jnp.log1p(-self.v)
        return log_v + jnp.concatenate([jnp.zeros(1), jnp.cumsum(log_1mv)[:-1]])

    def all_allocations(self) -> jnp.ndarray:
        return jnp.concatenate([self.z, self.z_predict])

    def n_active(self) -> int:
        """Number of components up to and including the highest occupied label."""
        return int(jnp.max(self.all_allocations())) + 1

    def n_occupied(self) -> int:
        return int(np.unique(np.asarray(self.z)).size)

    def counts(self) -> jnp.ndarray:
        """(C,) fitting subjects allocated to each component."""
        return jnp.bincount(self.z, length=self.max_n_clusters)

    def summary_arrays(self) -> Dict[str, jnp.ndarray]:
        """Continuous parameters that must stay finite."""
        arrays = {'v': self.v, 'alpha': self.alpha, 'theta': self.theta, 'beta': self.beta}
        if self.mu.size:
            arrays['mu'] = self.mu
            arrays['tau'] = self.tau
        if self.phi.size:
            arrays['phi'] = self.phi
        if self.options.response_extra_var:
            arrays['lambda'] = self.lambda_
        if self.options.outcome_type == OutcomeType.NORMAL:
            arrays['sigma_sq_y'] = self.sigma_sq_y
        return arrays


# ============================================================================
# INITIALISATION
# ============================================================================

def dirichlet_draw(key, concentration, mask):
    """
    Dirichlet draws over the unmasked trailing axis.

    Args:
        key: JAX random key
        concentration: (..., K) positive concentrations
        mask: boolean array broadcastable to concentration; False entries get 0
    """
    conc = jnp.where(mask, concentration, 1.0)
    g = random.gamma(key, conc) * mask
    return g / jnp.sum(g, axis=-1, keepdims=True)


def initial_cluster_count(options, key):
    """nClusInit, or a random count up to min(10, capacity) when it is 0."""
    if options.n_clus_init > 0:
        return options.n_clus_init, key
    key, subkey = random.split(key)
    upper = min(10, options.max_n_clusters)
    return int(random.randint(subkey, (), 1, upper + 1)), key


def initialise_profile_params(dataset, options, key):
    """
    Build a starting state by drawing most parameters from their priors.

    Args:
        dataset: ProfileData
        options: SamplerOptions
        key: JAX random key

    Returns:
        (ProfileParams, new_key)
    """
    hyper = load_hyper_params(options).resolve(dataset)
    C = options.max_n_clusters
    n, J = dataset.n_subjects, dataset.n_covariates
    Jd, Jc = dataset.n_discrete, dataset.n_continuous
    n_coef = max(1, dataset.n_categories_y - 1)

    n_init, key = initial_cluster_count(options, key)
    key, k_z, k_zp, k_alpha, k_v, k_phi, k_mu, k_tau, k_theta = random.split(key, 9)

    z = random.randint(k_z, (n,), 0, n_init)
    z_predict = random.randint(k_zp, (dataset.n_predict,), 0, n_init)

    if options.estimate_alpha:
        alpha = random.gamma(k_alpha, hyper.shape_alpha) / hyper.rate_alpha
    else:
        alpha = jnp.asarray(options.fixed_alpha, dtype=float)

    v = random.beta(k_v, 1.0, alpha, shape=(C,))
    eps = jnp.finfo(v.dtype).eps
    v = jnp.clip(v, eps, 1.0 - eps)
    if options.sampler_type == SamplerType.TRUNCATED:
        v = v.at[C - 1].set(1.0)

    if Jd:
        phi = dirichlet_draw(k_phi, jnp.full((C, Jd, dataset.max_categories), hyper.a_phi),
                             dataset.category_mask[None])
    else:
        phi = jnp.zeros((C, 0, 0))

    tau = random.gamma(k_tau, hyper.shape_tau, shape=(C, Jc)) / hyper.rate_tau[None]
    mu = hyper.mu0[None] + random.normal(k_mu, (C, Jc)) / jnp.sqrt(hyper.tau0)[None]

    if options.var_select_type == VarSelectType.NONE:
        rho = jnp.ones(J)
    else:
        rho = jnp.full(J, 0.5)
    gamma = jnp.broadcast_to(rho, (C, J))
    if options.var_select_type == VarSelectType.BINARY:
        gamma = jnp.ones((C, J))

    theta = hyper.mu_theta + hyper.sigma_theta * random.normal(k_theta, (C, n_coef))

    state = ProfileParams(
        v=v,
        alpha=jnp.asarray(alpha, dtype=float),
        z=z,
        z_predict=z_predict,
        u=jnp.zeros(n),
        phi=phi,
        mu=mu,
        tau=tau,
        gamma=gamma,
        rho=rho,
        omega=jnp.ones(J, dtype=jnp.int32),
        theta=theta,
        beta=jnp.zeros((dataset.n_fixed_effects, n_coef)),
        lambda_=jnp.zeros(n),
        tau_epsilon=jnp.asarray(hyper.shape_tau_epsilon / hyper.rate_tau_epsilon, dtype=float),
        sigma_sq_y=jnp.asarray(1.0),
        options=options,
        hyper_params=hyper,
        n_clusters_init=n_init,
        max_n_clusters=C,
    )
    return state, key
