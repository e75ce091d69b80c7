"""
Reference profile regression model.

Registers the 'profile_regression' model binding: data import, chain
initialisation, log posterior, missing data imputation, the update rule
library, the adaptive tuning records and the snapshot writer.
"""

from ..registry import register_model
from ..tuning import build_tuning_state
from .data import ProfileData, import_profile_data, MISSING_VALUE
from .params import HyperParams, ProfileParams, initialise_profile_params, load_hyper_params
from .likelihood import log_posterior
from .missing import update_missing_data
from .output import write_profile_output

# Imported after the model modules: the update rules build on them
from ..proposals import UPDATE_LIBRARY


def build_profile_tuning(options, dataset):
    """One tuning record per adaptive proposal, sized from the data."""
    return build_tuning_state(
        n_sweeps=options.n_sweeps,
        n_covariates=dataset.n_covariates,
        n_fixed_effects=dataset.n_fixed_effects,
        n_categories_y=dataset.n_categories_y,
    )


MODEL_CONFIG = {
    'import_data': import_profile_data,
    'initialise': initialise_profile_params,
    'log_posterior': log_posterior,
    'update_missing': update_missing_data,
    'updates': UPDATE_LIBRARY,
    'tuning': build_profile_tuning,
    'write_output': write_profile_output,
}

register_model('profile_regression', MODEL_CONFIG)

__all__ = [
    'ProfileData',
    'ProfileParams',
    'HyperParams',
    'MISSING_VALUE',
    'MODEL_CONFIG',
    'import_profile_data',
    'initialise_profile_params',
    'load_hyper_params',
    'log_posterior',
    'update_missing_data',
    'write_profile_output',
    'build_profile_tuning',
]
