"""
MCMC Backend - Main Entry Point.

profile_regression() runs a complete sampler lifecycle from one
command-line style option string:

    parse options -> configure -> bind model -> import data
    -> compose proposals -> install tuning -> open output files
    -> write log header -> initialise chain -> run -> close files
"""

import time
from datetime import timedelta

from .sampler import MCMCSampler
from .types import RunRecord

from ..composition import compose_proposals
from ..error_handling import diagnose_chain_issues, print_diagnostics
from ..options import SamplerOptions, parse_option_string
from ..proposal_specs import validate_proposal_specs
from ..registry import get_model

# Import the model package so the reference model is registered
from .. import model as _model  # noqa: F401

import logging
logger = logging.getLogger('prmcmc')

__all__ = [
    'profile_regression',
    'build_sampler',
]


def build_sampler(options: SamplerOptions, model_name: str = 'profile_regression') -> MCMCSampler:
    """
    Configure a sampler and take it as far as the registered proposals.

    Args:
        options: Run options
        model_name: Name of a model in the model registry

    Returns:
        MCMCSampler in the PROPOSALS_REGISTERED stage
    """
    model = get_model(model_name)

    sampler = MCMCSampler()
    sampler.configure(options)
    sampler.set_model(
        model['import_data'],
        model['initialise'],
        model['log_posterior'],
        update_missing_fn=model.get('update_missing'),
    )
    if 'write_output' in model:
        sampler.set_output_writer(model['write_output'])

    sampler.import_data(options.input_file, options.predict_file)
    specs = compose_proposals(options, sampler.dataset, model['updates'])
    validate_proposal_specs(specs, options.n_sweeps)
    sampler.add_proposals(specs)

    if 'tuning' in model:
        sampler.set_proposal_params(model['tuning'](options, sampler.dataset))

    return sampler


def profile_regression(input_string: str, model_name: str = 'profile_regression') -> RunRecord:
    """
    Run a profile regression sampler end to end.

    Args:
        input_string: Option string, e.g. '--input=data.txt --output=out --nSweeps=1000'
        model_name: Name of a model in the model registry

    Returns:
        RunRecord for the completed run

    Raises:
        ConfigurationError: Invalid options
        DataFormatError: Malformed input files
        OSError: Output files cannot be written
        Anything raised by the model's update rules
    """
    start_time = time.perf_counter()

    options = SamplerOptions.from_config(parse_option_string(input_string))

    logger.info("\n--- PROFILE REGRESSION ---")
    logger.info(f"  Input: {options.input_file}")
    logger.info(f"  Output stem: {options.output_stem}")
    logger.info(f"  Outcome: {options.outcome_type if options.include_response else 'excluded'}, "
                f"covariates: {options.covariate_type}, sampler: {options.sampler_type}")

    sampler = build_sampler(options, model_name)

    with sampler.output_files(options.output_stem):
        sampler.write_log_file()
        sampler.initialise_chain()
        record = sampler.run()

    diagnostics = diagnose_chain_issues(sampler.state, {})
    print_diagnostics(diagnostics)

    total = time.perf_counter() - start_time
    logger.info(f"Final log posterior: {sampler.final_log_posterior():.4f}")
    logger.info(f"Total time: {timedelta(seconds=round(total))}")
    return record
