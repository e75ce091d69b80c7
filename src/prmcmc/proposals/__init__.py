"""
Update rules for the profile regression model.

Each rule has the signature fn(state, tuning, dataset, key) -> (state, key)
and is looked up by its registry name in UPDATE_LIBRARY.
"""

from .weights import gibbs_for_v_active, gibbs_for_v_inactive, gibbs_for_u, mh_for_alpha
from .covariates import (
    update_for_phi_active,
    gibbs_for_phi_inactive,
    gibbs_for_mu_active,
    gibbs_for_mu_inactive,
    gibbs_for_tau_active,
    gibbs_for_tau_inactive,
)
from .selection import gibbs_for_gamma_active, gibbs_for_gamma_inactive, mh_for_rho_omega
from .response import (
    mh_for_theta_active,
    gibbs_for_theta_inactive,
    mh_for_beta,
    mh_for_lambda,
    gibbs_for_tau_epsilon,
    gibbs_for_sigma_sq_y,
)
from .allocation import mh_for_labels, gibbs_for_z


UPDATE_LIBRARY = {
    'gibbs_for_v_active': gibbs_for_v_active,
    'update_for_phi_active': update_for_phi_active,
    'gibbs_for_mu_active': gibbs_for_mu_active,
    'gibbs_for_tau_active': gibbs_for_tau_active,
    'gibbs_for_gamma_active': gibbs_for_gamma_active,
    'mh_for_theta_active': mh_for_theta_active,
    'mh_for_labels': mh_for_labels,
    'gibbs_for_u': gibbs_for_u,
    'mh_for_alpha': mh_for_alpha,
    'gibbs_for_v_inactive': gibbs_for_v_inactive,
    'gibbs_for_phi_inactive': gibbs_for_phi_inactive,
    'gibbs_for_mu_inactive': gibbs_for_mu_inactive,
    'gibbs_for_tau_inactive': gibbs_for_tau_inactive,
    'gibbs_for_gamma_inactive': gibbs_for_gamma_inactive,
    'gibbs_for_theta_inactive': gibbs_for_theta_inactive,
    'mh_for_beta': mh_for_beta,
    'mh_for_lambda': mh_for_lambda,
    'gibbs_for_tau_epsilon': gibbs_for_tau_epsilon,
    'mh_for_rho_omega': mh_for_rho_omega,
    'gibbs_for_sigma_sq_y': gibbs_for_sigma_sq_y,
    'gibbs_for_z': gibbs_for_z,
}

__all__ = ['UPDATE_LIBRARY'] + list(UPDATE_LIBRARY)
