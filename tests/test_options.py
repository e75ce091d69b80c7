"""
Tests for run options, option string parsing and option validation.

Run with: pytest tests/test_options.py -v
"""

import pytest

from prmcmc.options import (
    SamplerOptions,
    parse_option_string,
    OutcomeType,
    CovariateType,
    VarSelectType,
    SamplerType,
)
from prmcmc.error_handling import ConfigurationError, validate_options
from prmcmc.mcmc.utils import clean_config


# ============================================================================
# OPTION STRING PARSING
# ============================================================================

class TestParseOptionString:
    """Command-line style option strings."""

    def test_only_given_options_are_returned(self):
        config = parse_option_string('--input=data.txt --nSweeps=200')
        assert config == {'input_file': 'data.txt', 'n_sweeps': 200}

    def test_empty_string(self):
        assert parse_option_string('') == {}

    def test_model_switches(self):
        config = parse_option_string(
            '--xModel=Mixed --yModel=Poisson --varSelect=Continuous --sampler=Truncated'
        )
        assert config['covariate_type'] == 'Mixed'
        assert config['outcome_type'] == 'Poisson'
        assert config['var_select_type'] == 'Continuous'
        assert config['sampler_type'] == 'Truncated'

    def test_flags(self):
        config = parse_option_string('--excludeY --reportBurnIn --useSingle')
        assert config['include_response'] is False
        assert config['report_burn_in'] is True
        assert config['use_double'] is False

    def test_negative_alpha(self):
        assert parse_option_string('--alpha=-1')['fixed_alpha'] == -1.0

    def test_quoted_paths(self):
        config = parse_option_string("--input='my data.txt' --output=out/run1")
        assert config['input_file'] == 'my data.txt'
        assert config['output_stem'] == 'out/run1'

    def test_unknown_option_raises(self):
        with pytest.raises(ConfigurationError, match='Unknown options'):
            parse_option_string('--nSweeps=10 --bogus=1')

    def test_malformed_value_raises(self):
        with pytest.raises(ConfigurationError, match='Could not parse'):
            parse_option_string('--nSweeps=many')


# ============================================================================
# SAMPLER OPTIONS
# ============================================================================

class TestSamplerOptions:
    """Defaults, enum coercion and round trips."""

    def test_defaults_from_empty_config(self):
        options = SamplerOptions.from_config({})
        assert options.n_sweeps == 1000
        assert options.n_burn == 100
        assert options.n_filter == 1
        assert options.outcome_type is OutcomeType.BERNOULLI
        assert options.covariate_type is CovariateType.DISCRETE
        assert options.var_select_type is VarSelectType.NONE
        assert options.sampler_type is SamplerType.SLICE_DEPENDENT
        assert options.estimate_alpha
        assert not options.var_select

    def test_clean_config_keeps_given_values(self):
        config = clean_config({'n_sweeps': 7})
        assert config['n_sweeps'] == 7
        assert config['n_burn'] == 100

    def test_from_config_ignores_unknown_keys(self):
        options = SamplerOptions.from_config({'n_sweeps': 5, 'n_burn': 1, 'colour': 'blue'})
        assert options.n_sweeps == 5
        assert not hasattr(options, 'colour')

    def test_strings_become_enums(self):
        options = SamplerOptions(outcome_type='Normal', covariate_type='Mixed',
                                 var_select_type='BinaryCluster', sampler_type='Truncated')
        assert options.outcome_type is OutcomeType.NORMAL
        assert options.covariate_type is CovariateType.MIXED
        assert options.var_select_type is VarSelectType.BINARY
        assert options.sampler_type is SamplerType.TRUNCATED
        assert not options.sampler_type.is_slice

    def test_aliases(self):
        options = SamplerOptions(var_select_type='Binary', sampler_type='Slice')
        assert options.var_select_type is VarSelectType.BINARY
        assert options.sampler_type is SamplerType.SLICE_DEPENDENT

    def test_unrecognised_string_is_kept(self):
        options = SamplerOptions(covariate_type='Unrecognized')
        assert options.covariate_type == 'Unrecognized'

    def test_fixed_alpha_switches_estimation_off(self):
        assert not SamplerOptions(fixed_alpha=2.5).estimate_alpha
        assert SamplerOptions(fixed_alpha=-1).estimate_alpha

    def test_to_config_round_trip(self):
        options = SamplerOptions(n_sweeps=20, n_burn=5, outcome_type='Categorical',
                                 var_select_type='Continuous')
        config = options.to_config()
        assert config['outcome_type'] == 'Categorical'
        assert config['var_select_type'] == 'Continuous'
        assert SamplerOptions.from_config(config) == options

    def test_options_are_frozen(self):
        options = SamplerOptions()
        with pytest.raises(AttributeError):
            options.n_sweeps = 5


# ============================================================================
# VALIDATION
# ============================================================================

class TestValidateOptions:
    """Configuration errors are reported together, before any sweep."""

    def test_defaults_are_valid(self):
        validate_options(SamplerOptions())

    @pytest.mark.parametrize('overrides, message', [
        ({'n_sweeps': 0, 'n_burn': 0}, 'nSweeps must be >= 1'),
        ({'n_burn': -1}, 'nBurn must be >= 0'),
        ({'n_sweeps': 10, 'n_burn': 20}, 'cannot exceed nSweeps'),
        ({'n_filter': 0}, 'nFilter must be >= 1'),
        ({'n_progress': 0}, 'nProgress must be >= 1'),
        ({'max_n_clusters': 1}, 'maxNClusters must be >= 2'),
        ({'n_clus_init': 60}, 'cannot exceed maxNClusters'),
        ({'covariate_type': 'Unrecognized'}, 'Unrecognised covariate type'),
        ({'sampler_type': 'Gibbs'}, 'Unrecognised sampler type'),
        ({'var_select_type': 'Sometimes'}, 'Unrecognised variable selection type'),
        ({'outcome_type': 'Gamma'}, 'Unrecognised outcome type'),
        ({'outcome_type': None}, 'no outcome type'),
        ({'fixed_alpha': 0.0}, 'fixed alpha must be > 0'),
        ({'use_double': 'yes'}, 'use_double must be True or False'),
    ])
    def test_single_problem(self, overrides, message):
        with pytest.raises(ConfigurationError, match=message):
            validate_options(SamplerOptions(**overrides))

    @pytest.mark.parametrize('alpha', [-2.0, -0.5, 0.1, 3.0])
    def test_held_or_estimated_alpha(self, alpha):
        validate_options(SamplerOptions(fixed_alpha=alpha))

    def test_bad_precision_flag_from_config(self):
        with pytest.raises(ConfigurationError, match='use_double'):
            validate_options(SamplerOptions.from_config({'use_double': 'False'}))

    def test_extra_variation_needs_response(self):
        with pytest.raises(ConfigurationError, match='extraYVar'):
            validate_options(SamplerOptions(include_response=False, response_extra_var=True))

    def test_excluded_response_ignores_outcome_type(self):
        validate_options(SamplerOptions(include_response=False, outcome_type=None))

    def test_all_problems_listed(self):
        options = SamplerOptions(n_filter=0, n_progress=0, covariate_type='Unrecognized')
        with pytest.raises(ConfigurationError) as exc_info:
            validate_options(options)
        text = str(exc_info.value)
        assert 'nFilter' in text
        assert 'nProgress' in text
        assert 'covariate type' in text
