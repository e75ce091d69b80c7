"""
Pytest configuration and shared fixtures for prmcmc tests.
"""

from types import SimpleNamespace

import numpy as np
import pytest

from prmcmc.options import SamplerOptions
from prmcmc.composition import COMPOSITION_RULES
from prmcmc.registry import _REGISTRY


@pytest.fixture
def rng_seed():
    """Default RNG seed for reproducible tests."""
    return 42


@pytest.fixture
def make_options(rng_seed):
    """
    Factory for SamplerOptions with small sweep counts.

    Usage:
        def test_something(make_options):
            options = make_options(n_sweeps=50, covariate_type='Normal')
    """
    def _make(**overrides):
        config = {
            'n_sweeps': 30,
            'n_burn': 10,
            'n_filter': 5,
            'n_progress': 1000,
            'seed': rng_seed,
        }
        config.update(overrides)
        return SamplerOptions(**config)
    return _make


@pytest.fixture
def shape_dataset():
    """Factory for a dataset that only carries the dimensions composition reads."""
    def _make(n_covariates=3, n_fixed_effects=0, n_categories_y=1, has_missing=False):
        return SimpleNamespace(
            n_subjects=10,
            n_covariates=n_covariates,
            n_fixed_effects=n_fixed_effects,
            n_categories_y=n_categories_y,
            n_predict=0,
            has_missing=has_missing,
        )
    return _make


@pytest.fixture
def registry_snapshot():
    """
    Restore the model registry after a test that registers models.

    Usage:
        def test_something(registry_snapshot):
            register_model('scratch', {...})
    """
    saved = dict(_REGISTRY)
    yield
    _REGISTRY.clear()
    _REGISTRY.update(saved)


# ============================================================================
# RECORDING MODEL
# ============================================================================

class RecordingModel:
    """
    Model binding that records every call the engine makes.

    `events` holds ('missing', sweep) once per sweep and (name, sweep) for
    each update invocation. The sweep counter is advanced by the
    missing-data updater, so bind it with has_missing_data=True when sweep
    numbers matter.
    """

    def __init__(self, fail_on=None):
        self.events = []
        self.sweep = 0
        self.fail_on = fail_on
        self.imports = []
        self.written = []

    def import_data(self, data_path, predict_path, options):
        self.imports.append((data_path, predict_path))
        return SimpleNamespace(
            n_subjects=4,
            n_covariates=2,
            n_fixed_effects=0,
            n_categories_y=1,
            n_predict=0,
            has_missing=False,
        )

    def initialise(self, dataset, options, key):
        state = SimpleNamespace(
            value=0,
            hyper_params={'a': 1.0},
            n_clusters_init=1,
            max_n_clusters=2,
        )
        return state, key

    def log_posterior(self, state, dataset):
        return float(state.value)

    def update_missing(self, state, dataset, key):
        self.sweep += 1
        self.events.append(('missing', self.sweep))
        return dataset, key

    def update(self, name):
        def _update(state, tuning, dataset, key):
            self.events.append((name, self.sweep))
            if self.fail_on is not None and self.fail_on == (name, self.sweep):
                raise FloatingPointError(f"{name} produced a non-positive variance")
            if tuning is not None:
                tuning.record(1, index=0)
                tuning.adapt()
            return SimpleNamespace(**{**vars(state), 'value': state.value + 1}), key
        return _update

    def library(self):
        return {rule.name: self.update(rule.name) for rule in COMPOSITION_RULES}

    def write_output(self, files, sweep, state, dataset, tuning, log_post):
        self.written.append(sweep)
        files.write('value', state.value)

    def sweeps_of(self, name):
        return [sweep for event, sweep in self.events if event == name]


@pytest.fixture
def recording_model():
    return RecordingModel()


@pytest.fixture
def failing_model():
    """Recording model whose 'step' update raises on sweep 3."""
    return RecordingModel(fail_on=('step', 3))


# ============================================================================
# DATA FILES
# ============================================================================

@pytest.fixture
def write_data_file(tmp_path):
    """
    Write a data file in the profile regression input format.

    Usage:
        path = write_data_file(header=[...], rows=[[...], ...])
    """
    def _write(header, rows, name='data.txt'):
        path = tmp_path / name
        lines = [' '.join(str(h) for h in header)]
        lines.extend(' '.join(str(v) for v in row) for row in rows)
        path.write_text('\n'.join(lines) + '\n')
        return path
    return _write


@pytest.fixture
def bernoulli_discrete_data(write_data_file):
    """
    20 subjects, two discrete covariates (2 and 3 categories), one fixed
    effect, Bernoulli outcome. Two clear profiles.
    """
    rng = np.random.default_rng(3)
    rows = []
    for i in range(20):
        group = i % 2
        x1 = group if rng.random() < 0.9 else 1 - group
        x2 = 2 * group if rng.random() < 0.8 else 1
        w = round(float(rng.normal()), 3)
        y = int(rng.random() < (0.8 if group else 0.2))
        rows.append([y, x1, x2, w])
    header = [20, 2, 'smoke', 'diet', 1, 'age', 2, 3]
    return write_data_file(header, rows)


@pytest.fixture
def normal_continuous_data(write_data_file):
    """15 subjects, two continuous covariates, no fixed effects, Normal outcome."""
    rng = np.random.default_rng(5)
    rows = []
    for i in range(15):
        shift = 3.0 if i % 3 == 0 else 0.0
        x = rng.normal(shift, 1.0, size=2).round(3)
        y = round(float(shift + rng.normal()), 3)
        rows.append([y, x[0], x[1]])
    header = [15, 2, 'bmi', 'bp', 0]
    return write_data_file(header, rows)
