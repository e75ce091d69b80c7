"""
Tests for the sampler engine: lifecycle, sweep loop, thinning and failure handling.

These tests drive MCMCSampler with the RecordingModel from conftest, whose
callables log every invocation, so no real model is involved.

Run with: pytest tests/test_sampler.py -v
"""

import time

import numpy as np
import pytest

from prmcmc.mcmc import MCMCSampler, SamplerStage, is_output_sweep
from prmcmc.error_handling import ConfigurationError, DataFormatError, SamplerStateError
from prmcmc.proposal_specs import ProposalSpec, UpdateKind
from prmcmc.tuning import TuningRecord


def _build(make_options, model, tmp_path, specs=None, tuning=None, has_missing_data=True,
           writer=True, **overrides):
    """Take a sampler with the recording model up to PROPOSALS_REGISTERED."""
    options = make_options(output_stem=str(tmp_path / 'run'), **overrides)
    sampler = MCMCSampler()
    sampler.configure(options)
    sampler.set_model(model.import_data, model.initialise, model.log_posterior,
                      has_missing_data=has_missing_data,
                      update_missing_fn=model.update_missing)
    if writer:
        sampler.set_output_writer(model.write_output)
    sampler.import_data('data.txt')
    if specs is None:
        specs = [ProposalSpec('step', model.update('step'))]
    sampler.add_proposals(specs)
    if tuning is not None:
        sampler.set_proposal_params(tuning)
    return sampler


def _run(sampler):
    with sampler.output_files():
        sampler.write_log_file()
        sampler.initialise_chain()
        return sampler.run()


def _tuning_record(name):
    return TuningRecord(name=name, std_dev=np.ones(1), lower=0.1, upper=10.0,
                        accept_target=0.44, update_freq=5)


# ============================================================================
# THINNING RULE
# ============================================================================

class TestIsOutputSweep:
    """Which sweeps are written."""

    def test_post_burn_in(self):
        written = [s for s in range(1, 31) if is_output_sweep(s, n_burn=10, n_filter=5)]
        assert written == [15, 20, 25, 30]

    def test_report_burn_in(self):
        written = [s for s in range(1, 31) if is_output_sweep(s, 10, 5, report_burn_in=True)]
        assert written == [5, 10, 15, 20, 25, 30]

    def test_filter_counts_from_end_of_burn_in(self):
        written = [s for s in range(1, 21) if is_output_sweep(s, n_burn=3, n_filter=4)]
        assert written == [7, 11, 15, 19]

    def test_no_burn_in(self):
        assert [s for s in range(1, 4) if is_output_sweep(s, 0, 1)] == [1, 2, 3]


# ============================================================================
# LIFECYCLE
# ============================================================================

class TestLifecycle:
    """Stage transitions and out-of-order calls."""

    def test_stage_progression(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        assert sampler.stage == SamplerStage.PROPOSALS_REGISTERED

        with sampler.output_files():
            assert sampler.stage == SamplerStage.OUTPUT_READY
            sampler.initialise_chain()
            assert sampler.stage == SamplerStage.CHAIN_INITIALISED
            sampler.run()
        assert sampler.stage == SamplerStage.COMPLETED

    def test_fresh_sampler(self):
        sampler = MCMCSampler()
        assert sampler.stage == SamplerStage.UNCONFIGURED
        assert sampler.proposals == []
        assert sampler.record is None

    def test_run_before_configure(self):
        with pytest.raises(SamplerStateError, match='run'):
            MCMCSampler().run()

    def test_import_before_configure(self, recording_model):
        sampler = MCMCSampler()
        sampler.set_model(recording_model.import_data, recording_model.initialise,
                          recording_model.log_posterior)
        with pytest.raises(SamplerStateError, match='UNCONFIGURED'):
            sampler.import_data('data.txt')

    def test_import_before_set_model(self, make_options):
        sampler = MCMCSampler()
        sampler.configure(make_options())
        with pytest.raises(SamplerStateError, match='set_model'):
            sampler.import_data('data.txt')

    def test_configure_twice(self, make_options):
        sampler = MCMCSampler()
        sampler.configure(make_options())
        with pytest.raises(SamplerStateError):
            sampler.configure(make_options())

    def test_invalid_options_leave_sampler_unconfigured(self, make_options):
        sampler = MCMCSampler()
        with pytest.raises(ConfigurationError):
            sampler.configure(make_options(n_filter=0))
        assert sampler.stage == SamplerStage.UNCONFIGURED

    def test_add_proposal_before_data(self, make_options, recording_model):
        sampler = MCMCSampler()
        sampler.configure(make_options())
        with pytest.raises(SamplerStateError):
            sampler.add_proposal(ProposalSpec('step', recording_model.update('step')))

    def test_output_files_need_proposals(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path, specs=[])
        assert sampler.stage == SamplerStage.DATA_LOADED
        with pytest.raises(SamplerStateError, match='initialise_output_files'):
            sampler.initialise_output_files()

    def test_initialise_chain_needs_output_files(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        with pytest.raises(SamplerStateError, match='initialise_chain'):
            sampler.initialise_chain()

    def test_run_before_initialise_chain(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        with sampler.output_files():
            with pytest.raises(SamplerStateError, match='CHAIN_INITIALISED'):
                sampler.run()

    def test_run_after_files_closed(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        sampler.initialise_output_files()
        sampler.initialise_chain()
        sampler.close_output_files()
        with pytest.raises(SamplerStateError, match='open output files'):
            sampler.run()

    def test_run_twice(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        _run(sampler)
        with pytest.raises(SamplerStateError):
            sampler.run()

    def test_output_writer_locked_after_run(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        _run(sampler)
        with pytest.raises(SamplerStateError):
            sampler.set_output_writer(recording_model.write_output)

    def test_log_file_needs_open_files(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        with pytest.raises(SamplerStateError, match='write_log_file'):
            sampler.write_log_file()
        with pytest.raises(SamplerStateError, match='append_to_log_file'):
            sampler.append_to_log_file('text')

    def test_final_log_posterior_before_chain(self):
        with pytest.raises(SamplerStateError):
            MCMCSampler().final_log_posterior()


# ============================================================================
# MODEL BINDING
# ============================================================================

class TestModelBinding:
    """set_model and import_data checks."""

    def test_non_callable_rejected(self, recording_model):
        sampler = MCMCSampler()
        with pytest.raises(ConfigurationError, match='initialise_fn'):
            sampler.set_model(recording_model.import_data, None, recording_model.log_posterior)

    def test_missing_data_needs_updater(self, recording_model):
        sampler = MCMCSampler()
        with pytest.raises(ConfigurationError, match='update_missing_fn'):
            sampler.set_model(recording_model.import_data, recording_model.initialise,
                              recording_model.log_posterior, has_missing_data=True)

    def test_missing_data_decided_by_dataset(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path, has_missing_data=None)
        assert not sampler.has_missing_data
        _run(sampler)
        assert recording_model.sweeps_of('missing') == []

    def test_dataset_with_missing_values_needs_updater(self, make_options, recording_model):
        def import_with_missing(data_path, predict_path, options):
            dataset = recording_model.import_data(data_path, predict_path, options)
            dataset.has_missing = True
            return dataset

        sampler = MCMCSampler()
        sampler.configure(make_options())
        sampler.set_model(import_with_missing, recording_model.initialise,
                          recording_model.log_posterior)
        with pytest.raises(ConfigurationError, match='missing values'):
            sampler.import_data('data.txt')

    def test_import_error_propagates(self, make_options, recording_model):
        def bad_import(data_path, predict_path, options):
            raise DataFormatError(f"{data_path}: unexpected end of file reading n_subjects")

        sampler = MCMCSampler()
        sampler.configure(make_options())
        sampler.set_model(bad_import, recording_model.initialise, recording_model.log_posterior)
        with pytest.raises(DataFormatError, match='unexpected end of file'):
            sampler.import_data('data.txt')
        assert sampler.stage == SamplerStage.CONFIGURED

    def test_paths_passed_to_importer(self, make_options, recording_model):
        sampler = MCMCSampler()
        sampler.configure(make_options())
        sampler.set_model(recording_model.import_data, recording_model.initialise,
                          recording_model.log_posterior)
        sampler.import_data('data.txt', 'predict.txt')
        assert recording_model.imports == [('data.txt', 'predict.txt')]


# ============================================================================
# PROPOSAL REGISTRY
# ============================================================================

class TestProposalRegistry:
    """add_proposal checks."""

    def test_duplicate_name(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        with pytest.raises(ConfigurationError, match='already registered'):
            sampler.add_proposal(ProposalSpec('step', recording_model.update('step')))

    def test_first_sweep_past_end(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        with pytest.raises(ConfigurationError, match='exceeds nSweeps'):
            sampler.add_proposal(ProposalSpec('late', recording_model.update('late'), first_sweep=31))

    def test_not_a_spec(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        with pytest.raises(ConfigurationError, match='Expected ProposalSpec'):
            sampler.add_proposal(recording_model.update('raw'))

    def test_registry_order_kept(self, make_options, recording_model, tmp_path):
        names = ['c', 'a', 'b']
        specs = [ProposalSpec(n, recording_model.update(n)) for n in names]
        sampler = _build(make_options, recording_model, tmp_path, specs=specs)
        assert [s.name for s in sampler.proposals] == names

    def test_adaptive_proposal_needs_record(self, make_options, recording_model, tmp_path):
        specs = [ProposalSpec('mh_a', recording_model.update('mh_a'), kind=UpdateKind.ADAPTIVE_MH)]
        sampler = _build(make_options, recording_model, tmp_path, specs=specs)
        with sampler.output_files():
            with pytest.raises(ConfigurationError, match="'mh_a' has no tuning record"):
                sampler.initialise_chain()


# ============================================================================
# SWEEP LOOP
# ============================================================================

class TestSweepLoop:
    """What runs on each sweep, and in which order."""

    def test_thinning(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path, n_sweeps=30, n_burn=10, n_filter=5)
        record = _run(sampler)

        assert record.output_sweeps == [15, 20, 25, 30]
        assert recording_model.written == [15, 20, 25, 30]
        lines = (tmp_path / 'run_value.txt').read_text().splitlines()
        assert lines == ['15', '20', '25', '30']

    def test_report_burn_in(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path, report_burn_in=True)
        record = _run(sampler)
        assert record.output_sweeps == [5, 10, 15, 20, 25, 30]

    def test_missing_data_updated_before_proposals(self, make_options, recording_model, tmp_path):
        specs = [ProposalSpec(n, recording_model.update(n)) for n in ('a', 'b')]
        sampler = _build(make_options, recording_model, tmp_path, specs=specs, n_sweeps=3, n_burn=0,
                         n_filter=1)
        _run(sampler)
        assert recording_model.events == [
            ('missing', 1), ('a', 1), ('b', 1),
            ('missing', 2), ('a', 2), ('b', 2),
            ('missing', 3), ('a', 3), ('b', 3),
        ]

    def test_no_missing_data_update(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path, has_missing_data=False)
        _run(sampler)
        assert recording_model.sweeps_of('missing') == []
        assert len(recording_model.sweeps_of('step')) == 30

    def test_deferred_proposal(self, make_options, recording_model, tmp_path):
        specs = [
            ProposalSpec('early', recording_model.update('early')),
            ProposalSpec('late', recording_model.update('late'), first_sweep=6),
        ]
        sampler = _build(make_options, recording_model, tmp_path, specs=specs,
                         n_sweeps=100, n_burn=50)
        _run(sampler)
        assert recording_model.sweeps_of('early') == list(range(1, 101))
        assert recording_model.sweeps_of('late') == list(range(6, 101))

    def test_repeat_count(self, make_options, recording_model, tmp_path):
        specs = [
            ProposalSpec('once', recording_model.update('once')),
            ProposalSpec('thrice', recording_model.update('thrice'), repeat_count=3),
        ]
        sampler = _build(make_options, recording_model, tmp_path, specs=specs, n_sweeps=4, n_burn=0,
                         n_filter=1)
        _run(sampler)
        assert recording_model.sweeps_of('thrice') == [1, 1, 1, 2, 2, 2, 3, 3, 3, 4, 4, 4]
        assert sampler.state.value == 4 * 4

    def test_each_proposal_gets_its_own_record(self, make_options, recording_model, tmp_path):
        specs = [
            ProposalSpec('mh_a', recording_model.update('mh_a'), kind=UpdateKind.ADAPTIVE_MH),
            ProposalSpec('mh_b', recording_model.update('mh_b'), kind=UpdateKind.ADAPTIVE_MH,
                         repeat_count=2),
            ProposalSpec('gibbs', recording_model.update('gibbs')),
        ]
        tuning = {'mh_a': _tuning_record('mh_a'), 'mh_b': _tuning_record('mh_b')}
        sampler = _build(make_options, recording_model, tmp_path, specs=specs, tuning=tuning)
        _run(sampler)
        assert sampler.tuning['mh_a'].n_tries[0] == 30
        assert sampler.tuning['mh_b'].n_tries[0] == 60
        assert 'gibbs' not in sampler.tuning

    def test_state_threaded_between_proposals(self, make_options, recording_model, tmp_path):
        seen = []

        def observer(state, tuning, dataset, key):
            seen.append(state.value)
            return state, key

        specs = [
            ProposalSpec('step', recording_model.update('step')),
            ProposalSpec('observe', observer),
        ]
        sampler = _build(make_options, recording_model, tmp_path, specs=specs, n_sweeps=3, n_burn=0,
                         n_filter=1)
        _run(sampler)
        assert seen == [1, 2, 3]

    def test_key_threaded_between_proposals(self, make_options, recording_model, tmp_path):
        import jax.random as random
        keys = []

        def consume(state, tuning, dataset, key):
            key, used = random.split(key)
            keys.append(np.asarray(used).tolist())
            return state, key

        specs = [ProposalSpec('a', consume), ProposalSpec('b', consume)]
        sampler = _build(make_options, recording_model, tmp_path, specs=specs, n_sweeps=5, n_burn=0,
                         n_filter=1)
        _run(sampler)
        assert len(keys) == 10
        assert len({tuple(k) for k in keys}) == 10

    def test_output_without_writer(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path, writer=False)
        _run(sampler)
        lines = (tmp_path / 'run_logPost.txt').read_text().splitlines()
        assert [float(v) for v in lines] == [15.0, 20.0, 25.0, 30.0]

    def test_final_log_posterior(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        _run(sampler)
        assert sampler.final_log_posterior() == 30.0


# ============================================================================
# RUN LOG AND RECORD
# ============================================================================

class TestRunLog:
    """Header, progress lines and summary."""

    def test_log_contents(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path, n_progress=10)
        record = _run(sampler)

        text = (tmp_path / 'run_log.txt').read_text()
        assert 'Run options:' in text
        assert 'Proposals (1):' in text
        assert 'step [Gibbs] first_sweep=1' in text
        assert 'Sweep 10/30' in text
        assert 'Sweep 30/30' in text
        assert 'Initial number of clusters: 1' in text
        assert 'Maximum number of clusters: 2' in text
        assert 'Elapsed time:' in text
        assert record.summary in text

    def test_append_to_log(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        with sampler.output_files():
            sampler.append_to_log_file('custom note')
        assert 'custom note' in (tmp_path / 'run_log.txt').read_text()

    def test_summary_goes_through_append(self, make_options, recording_model, tmp_path,
                                         monkeypatch):
        sampler = _build(make_options, recording_model, tmp_path)
        appended = []
        original = sampler.append_to_log_file

        def spy(text):
            appended.append(text)
            original(text)

        monkeypatch.setattr(sampler, 'append_to_log_file', spy)
        record = _run(sampler)
        assert appended == [record.summary]

    def test_elapsed_time_includes_initialisation(self, make_options, recording_model, tmp_path):
        def slow_initialise(dataset, options, key):
            time.sleep(0.05)
            return recording_model.initialise(dataset, options, key)

        options = make_options(output_stem=str(tmp_path / 'run'))
        sampler = MCMCSampler()
        sampler.configure(options)
        sampler.set_model(recording_model.import_data, slow_initialise,
                          recording_model.log_posterior, has_missing_data=False)
        sampler.import_data('data.txt')
        sampler.add_proposal(ProposalSpec('step', recording_model.update('step')))
        record = _run(sampler)
        assert record.elapsed_seconds >= 0.05

    def test_record(self, make_options, recording_model, tmp_path):
        sampler = _build(make_options, recording_model, tmp_path)
        record = _run(sampler)
        assert record is sampler.record
        assert record.n_sweeps == 30
        assert record.elapsed_seconds >= 0.0


# ============================================================================
# FAILURES
# ============================================================================

class TestFailures:
    """A failing callable aborts the run and still releases the files."""

    def test_failure_closes_files_once(self, make_options, failing_model, tmp_path):
        sampler = _build(make_options, failing_model, tmp_path)

        with pytest.raises(FloatingPointError, match='non-positive variance'):
            with sampler.output_files() as files:
                sampler.initialise_chain()
                sampler.run()

        assert sampler.stage == SamplerStage.FAILED
        assert files.closed
        assert files.close_count == 1
        sampler.close_output_files()
        assert files.close_count == 1

    def test_initialiser_failure_closes_files(self, make_options, recording_model, tmp_path):
        def broken_initialise(dataset, options, key):
            raise ValueError("no starting state")

        options = make_options(output_stem=str(tmp_path / 'run'))
        sampler = MCMCSampler()
        sampler.configure(options)
        sampler.set_model(recording_model.import_data, broken_initialise,
                          recording_model.log_posterior, has_missing_data=False)
        sampler.import_data('data.txt')
        sampler.add_proposal(ProposalSpec('step', recording_model.update('step')))

        sampler.initialise_output_files()
        files = sampler.files
        with pytest.raises(ValueError, match='no starting state'):
            sampler.initialise_chain()

        assert sampler.stage == SamplerStage.FAILED
        assert files.closed
        assert files.close_count == 1
        sampler.close_output_files()
        assert files.close_count == 1
        with pytest.raises(SamplerStateError):
            sampler.run()

    def test_failure_is_not_retried(self, make_options, failing_model, tmp_path):
        sampler = _build(make_options, failing_model, tmp_path)
        with pytest.raises(FloatingPointError):
            _run(sampler)
        assert failing_model.sweeps_of('step') == [1, 2, 3]

    def test_failure_writes_no_summary(self, make_options, failing_model, tmp_path):
        sampler = _build(make_options, failing_model, tmp_path)
        with pytest.raises(FloatingPointError):
            _run(sampler)
        assert 'Elapsed time:' not in (tmp_path / 'run_log.txt').read_text()

    def test_failing_missing_data_update(self, make_options, recording_model, tmp_path):
        def broken_update(state, dataset, key):
            raise ValueError("imputation failed")

        options = make_options(output_stem=str(tmp_path / 'run'))
        sampler = MCMCSampler()
        sampler.configure(options)
        sampler.set_model(recording_model.import_data, recording_model.initialise,
                          recording_model.log_posterior, has_missing_data=True,
                          update_missing_fn=broken_update)
        sampler.import_data('data.txt')
        sampler.add_proposal(ProposalSpec('step', recording_model.update('step')))

        with pytest.raises(ValueError, match='imputation failed'):
            _run(sampler)
        assert sampler.stage == SamplerStage.FAILED
        assert recording_model.sweeps_of('step') == []
