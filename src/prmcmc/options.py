"""
Run Options

This module defines the immutable run configuration for a profile regression
sampler and the parser for the command-line style option string.

Key pieces:
1. Enumerations for the model structure switches (outcome, covariates,
   variable selection, sampler variant)
2. SamplerOptions: frozen dataclass read by the engine and the proposal
   composition table
3. parse_option_string: turns '--nSweeps=100 --xModel=Normal ...' into a
   config dict, which clean_config/SamplerOptions.from_config finish off

Example:
    from prmcmc.options import parse_option_string, SamplerOptions

    config = parse_option_string('--input=data.txt --nSweeps=2000 --nBurn=500')
    options = SamplerOptions.from_config(config)
"""

import argparse
import shlex
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


# ============================================================================
# STRUCTURE SWITCHES
# ============================================================================

class OutcomeType(str, Enum):
    """Response model linking profiles to the outcome."""
    BERNOULLI = 'Bernoulli'
    BINOMIAL = 'Binomial'
    POISSON = 'Poisson'
    NORMAL = 'Normal'
    CATEGORICAL = 'Categorical'
    SURVIVAL = 'Survival'

    def __str__(self):
        return self.value


class CovariateType(str, Enum):
    """Covariate model for the mixture components."""
    DISCRETE = 'Discrete'
    NORMAL = 'Normal'
    MIXED = 'Mixed'

    def __str__(self):
        return self.value


class VarSelectType(str, Enum):
    """Variable selection mechanism."""
    NONE = 'None'
    BINARY = 'BinaryCluster'
    CONTINUOUS = 'Continuous'

    def __str__(self):
        return self.value


class SamplerType(str, Enum):
    """
    Representation of the infinite mixture.

    TRUNCATED uses a fixed number of components with the last stick set to 1.
    The two slice variants introduce per-subject slice variables; DEPENDENT
    slices on the component weights, INDEPENDENT on a fixed geometric sequence.
    """
    TRUNCATED = 'Truncated'
    SLICE_DEPENDENT = 'SliceDependent'
    SLICE_INDEPENDENT = 'SliceIndependent'

    def __str__(self):
        return self.value

    @property
    def is_slice(self):
        return self is not SamplerType.TRUNCATED


# Older spellings accepted on the command line
_ALIASES = {
    VarSelectType: {'Binary': VarSelectType.BINARY},
    SamplerType: {'Slice': SamplerType.SLICE_DEPENDENT},
}


def _coerce(enum_cls, value):
    """Convert a string to enum_cls when it names a member, else return it unchanged."""
    if isinstance(value, enum_cls):
        return value
    aliases = _ALIASES.get(enum_cls, {})
    if value in aliases:
        return aliases[value]
    try:
        return enum_cls(value)
    except ValueError:
        # Left as-is so validate_options can report every bad value at once
        return value


# ============================================================================
# SAMPLER OPTIONS
# ============================================================================

@dataclass(frozen=True)
class SamplerOptions:
    """
    Immutable run parameters.

    Sweep counts are totals: sweeps 1..n_sweeps are run and the first
    n_burn of them are burn-in. fixed_alpha < 0 means the concentration
    parameter is estimated by Metropolis-Hastings.
    """
    n_sweeps: int = 1000
    n_burn: int = 100
    n_filter: int = 1
    n_progress: int = 500
    report_burn_in: bool = False
    seed: int = 0

    outcome_type: Any = OutcomeType.BERNOULLI
    covariate_type: Any = CovariateType.DISCRETE
    var_select_type: Any = VarSelectType.NONE
    sampler_type: Any = SamplerType.SLICE_DEPENDENT
    fixed_alpha: float = -2.0
    include_response: bool = True
    response_extra_var: bool = False

    n_clus_init: int = 0
    max_n_clusters: int = 50
    use_double: bool = True

    input_file: str = 'input.txt'
    output_stem: str = 'output'
    hyper_file: Optional[str] = None
    predict_file: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'outcome_type', _coerce(OutcomeType, self.outcome_type))
        object.__setattr__(self, 'covariate_type', _coerce(CovariateType, self.covariate_type))
        object.__setattr__(self, 'var_select_type', _coerce(VarSelectType, self.var_select_type))
        object.__setattr__(self, 'sampler_type', _coerce(SamplerType, self.sampler_type))

    @property
    def estimate_alpha(self):
        return self.fixed_alpha < 0

    @property
    def var_select(self):
        return self.var_select_type != VarSelectType.NONE

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'SamplerOptions':
        """Build options from a (cleaned) config dict, ignoring unknown keys."""
        from .mcmc.utils import clean_config

        config = clean_config(dict(config))
        known = {name: config[name] for name in cls.__dataclass_fields__ if name in config}
        return cls(**known)

    def to_config(self) -> Dict[str, Any]:
        """Serializable dict form (enums rendered as their option strings)."""
        config = asdict(self)
        for key, value in config.items():
            if isinstance(value, Enum):
                config[key] = value.value
        return config


# ============================================================================
# OPTION STRING PARSING
# ============================================================================

def _build_parser():
    parser = argparse.ArgumentParser(
        prog='prmcmc',
        description='Profile regression by Dirichlet process mixture MCMC',
        allow_abbrev=False,
    )
    parser.add_argument('--input', dest='input_file', default=argparse.SUPPRESS)
    parser.add_argument('--output', dest='output_stem', default=argparse.SUPPRESS)
    parser.add_argument('--hyper', dest='hyper_file', default=argparse.SUPPRESS)
    parser.add_argument('--predict', dest='predict_file', default=argparse.SUPPRESS)
    parser.add_argument('--nSweeps', dest='n_sweeps', type=int, default=argparse.SUPPRESS)
    parser.add_argument('--nBurn', dest='n_burn', type=int, default=argparse.SUPPRESS)
    parser.add_argument('--nFilter', dest='n_filter', type=int, default=argparse.SUPPRESS)
    parser.add_argument('--nProgress', dest='n_progress', type=int, default=argparse.SUPPRESS)
    parser.add_argument('--nClusInit', dest='n_clus_init', type=int, default=argparse.SUPPRESS)
    parser.add_argument('--maxNClusters', dest='max_n_clusters', type=int, default=argparse.SUPPRESS)
    parser.add_argument('--seed', dest='seed', type=int, default=argparse.SUPPRESS)
    parser.add_argument('--yModel', dest='outcome_type', default=argparse.SUPPRESS)
    parser.add_argument('--xModel', dest='covariate_type', default=argparse.SUPPRESS)
    parser.add_argument('--sampler', dest='sampler_type', default=argparse.SUPPRESS)
    parser.add_argument('--alpha', dest='fixed_alpha', type=float, default=argparse.SUPPRESS)
    parser.add_argument('--varSelect', dest='var_select_type', default=argparse.SUPPRESS)
    parser.add_argument('--excludeY', dest='include_response', action='store_false',
                        default=argparse.SUPPRESS)
    parser.add_argument('--extraYVar', dest='response_extra_var', action='store_true',
                        default=argparse.SUPPRESS)
    parser.add_argument('--reportBurnIn', dest='report_burn_in', action='store_true',
                        default=argparse.SUPPRESS)
    parser.add_argument('--useSingle', dest='use_double', action='store_false',
                        default=argparse.SUPPRESS)
    parser.add_argument('--useDouble', dest='use_double', action='store_true',
                        default=argparse.SUPPRESS)
    return parser


def parse_option_string(text: str) -> Dict[str, Any]:
    """
    Parse a command-line style option string into a config dict.

    Only options present in the string appear in the result; defaults are
    applied later by clean_config.

    Raises:
        ConfigurationError: If the string contains unknown or malformed options
    """
    from .error_handling import ConfigurationError

    parser = _build_parser()
    tokens = shlex.split(text or '')
    try:
        namespace, unknown = parser.parse_known_args(tokens)
    except SystemExit as e:
        # argparse exits on type errors; surface them as configuration errors
        raise ConfigurationError(f"Could not parse option string: {text!r}") from e
    if unknown:
        raise ConfigurationError(f"Unknown options: {' '.join(unknown)}")
    return vars(namespace)
