"""
Chain snapshot writer for the profile regression model.

Each output sweep appends one line to each of the files below (files that
do not apply to the run's model structure are never created):

    nClusters   number of active components
    psi         active component weights
    alpha       concentration parameter
    z           allocations (fitting subjects, then prediction subjects)
    phi         discrete covariate probabilities, active components
    mu, tau     normal covariate means and precisions, active components
    theta, beta outcome coefficients
    rho, omega  variable selection weights and spike/slab switches
    gamma       binary selection indicators, active components
    lambda      subject-level extra variation; tauEpsilon its precision
    sigmaSqY    Normal outcome variance
    logPost     joint log density
    <proposal>_accept  acceptance rates of adaptive proposals
"""

import numpy as np
import jax.numpy as jnp

from ..options import OutcomeType, VarSelectType


def write_profile_output(files, sweep, state, dataset, tuning, log_post):
    opts = state.options
    n_active = state.n_active()

    files.write('nClusters', n_active)
    files.write('psi', jnp.exp(state.log_psi())[:n_active])
    files.write('alpha', state.alpha)
    files.write('z', state.all_allocations())

    if dataset.n_discrete:
        files.write('phi', state.phi[:n_active])
    if dataset.n_continuous:
        files.write('mu', state.mu[:n_active])
        files.write('tau', state.tau[:n_active])

    if opts.include_response:
        files.write('theta', state.theta[:n_active])
        if dataset.n_fixed_effects:
            files.write('beta', state.beta)
        if opts.response_extra_var:
            files.write('lambda', state.lambda_)
            files.write('tauEpsilon', state.tau_epsilon)
        if opts.outcome_type == OutcomeType.NORMAL:
            files.write('sigmaSqY', state.sigma_sq_y)

    if opts.var_select_type != VarSelectType.NONE:
        files.write('rho', state.rho)
        files.write('omega', state.omega)
        if opts.var_select_type == VarSelectType.BINARY:
            files.write('gamma', state.gamma[:n_active])

    files.write('logPost', log_post)

    for name, record in (tuning or {}).items():
        if np.any(record.n_tries > 0):
            files.write(f'{name}_accept', record.acceptance_rate())
