"""
Missing covariate imputation.

Once per sweep, before any update rule runs, every missing covariate value
is redrawn from its allocated component's covariate distribution. The
outcome depends on covariates only through the allocation, so this is the
exact full conditional.
"""

import dataclasses

import jax.numpy as jnp
import jax.random as random

from .likelihood import discrete_log_probs, continuous_means


def update_missing_data(state, dataset, key):
    """
    Redraw the missing entries of dataset.x.

    Returns:
        (dataset with new imputed values, new_key)
    """
    if not dataset.has_missing:
        return dataset, key

    key, discrete_key, continuous_key = random.split(key, 3)
    z_all = state.all_allocations()
    missing = jnp.asarray(dataset.missing)
    Jd = dataset.n_discrete
    x = dataset.x

    if Jd:
        logp = discrete_log_probs(state, dataset)[z_all]
        draws = random.categorical(discrete_key, logp, axis=-1).astype(x.dtype)
        x = x.at[:, :Jd].set(jnp.where(missing[:, :Jd], draws, x[:, :Jd]))

    if dataset.n_continuous:
        means = continuous_means(state, dataset)[z_all]
        sd = 1.0 / jnp.sqrt(state.tau[z_all])
        draws = means + sd * random.normal(continuous_key, means.shape)
        x = x.at[:, Jd:].set(jnp.where(missing[:, Jd:], draws, x[:, Jd:]))

    return dataclasses.replace(dataset, x=x), key
