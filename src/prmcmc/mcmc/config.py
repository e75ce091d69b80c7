"""
Sampler Configuration.

- gen_rng_key: seed the JAX PRNG
- configure_precision: select float32/float64 for the run
- validate_sampler_inputs: cross-checks between the registry and tuning records
"""

import jax
import jax.random as random
from typing import Any, Dict, List

from ..error_handling import ConfigurationError
from ..proposal_specs import ProposalSpec

import logging
logger = logging.getLogger('prmcmc')


def gen_rng_key(rng_seed: int) -> Any:
    """Generate the run's JAX random key from seed.

    A single key is threaded through the initialiser, the missing-data
    updater and every proposal, so a seed fixes the whole chain.
    """
    return random.PRNGKey(rng_seed)


def configure_precision(use_double: bool) -> None:
    """Enable or disable 64-bit floats for everything JAX computes from here on."""
    jax.config.update("jax_enable_x64", bool(use_double))
    logger.debug(f"JAX precision: {'float64' if use_double else 'float32'}")


def validate_sampler_inputs(specs: List[ProposalSpec], tuning: Dict[str, Any]) -> bool:
    """Validate the registry against the installed tuning records before a run."""
    errors = []

    if not specs:
        errors.append("No proposals registered")

    for spec in specs:
        if spec.is_adaptive() and spec.name not in tuning:
            errors.append(f"Adaptive proposal '{spec.name}' has no tuning record")

    if errors:
        raise ConfigurationError("Sampler input validation failed:\n  " + "\n  ".join(errors))

    return True
