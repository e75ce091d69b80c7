"""
prmcmc - Profile Regression MCMC

Bayesian profile regression: a stick-breaking Dirichlet process mixture over
covariate profiles, optionally linked to an outcome, fitted by a sweep-based
MCMC engine.

Public API:
    Entry point:
        profile_regression - Run a complete sampler from an option string

    Options:
        SamplerOptions - Frozen run configuration
        parse_option_string - '--nSweeps=... --xModel=...' -> config dict
        OutcomeType, CovariateType, VarSelectType, SamplerType - Structure switches

    Engine:
        MCMCSampler - Lifecycle and sweep loop
        SamplerStage - Lifecycle stages
        ProposalSpec - Descriptor of one update rule
        UpdateKind - Gibbs / MH / adaptive MH tag
        compose_proposals - Ordered proposal list for a run
        build_tuning_state - Adaptive tuning records

    Model registration:
        register_model - Register a model binding
        get_model - Retrieve a registered model binding
        list_models - List registered model names

    Errors:
        ConfigurationError, DataFormatError, SamplerStateError

Example:
    from prmcmc import profile_regression

    record = profile_regression(
        '--input=data.txt --output=out/run1 --xModel=Normal --yModel=Bernoulli '
        '--nSweeps=5000 --nBurn=1000 --seed=7'
    )
"""
# CRITICAL: Import jax_config FIRST to set environment variables before JAX loads
from . import jax_config  # noqa: F401

from .options import (
    SamplerOptions,
    parse_option_string,
    OutcomeType,
    CovariateType,
    VarSelectType,
    SamplerType,
)
from .error_handling import ConfigurationError, DataFormatError, SamplerStateError
from .proposal_specs import ProposalSpec, UpdateKind
from .tuning import TuningRecord, build_tuning_state
from .registry import register_model, get_model, list_models
from .composition import compose_proposals
from .mcmc import MCMCSampler, SamplerStage, RunRecord, profile_regression, build_sampler

__all__ = [
    'profile_regression',
    'build_sampler',
    'SamplerOptions',
    'parse_option_string',
    'OutcomeType',
    'CovariateType',
    'VarSelectType',
    'SamplerType',
    'MCMCSampler',
    'SamplerStage',
    'RunRecord',
    'ProposalSpec',
    'UpdateKind',
    'TuningRecord',
    'compose_proposals',
    'build_tuning_state',
    'register_model',
    'get_model',
    'list_models',
    'ConfigurationError',
    'DataFormatError',
    'SamplerStateError',
]
