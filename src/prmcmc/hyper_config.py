"""
Hyperparameter configuration files.

Hyperparameters are stored as flat JSON objects so they can be inspected and
edited without importing JAX. Keys match the field names of the model's
HyperParams dataclass; keys absent from the file keep their defaults.

Example file:
    {
      "shape_alpha": 2.0,
      "rate_alpha": 1.0,
      "a_phi": 0.5
    }
"""

import json
from pathlib import Path

import logging
logger = logging.getLogger('prmcmc')


def _convert_for_json(obj):
    if hasattr(obj, 'tolist'):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {k: _convert_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_convert_for_json(item) for item in obj]
    return obj


def save_hyper_config(path, hyper_config: dict):
    """
    Save hyperparameters to JSON.

    Args:
        path: Destination file
        hyper_config: Dict of hyperparameter values (arrays allowed)

    Returns:
        Path to saved config file as a string
    """
    config_path = Path(path)
    with open(config_path, 'w') as f:
        json.dump(_convert_for_json(hyper_config), f, indent=2)

    logger.info(f"Hyperparameters saved: {config_path}")
    return str(config_path)


def load_hyper_config(path):
    """
    Load hyperparameters from JSON.

    Args:
        path: JSON file written by save_hyper_config (or by hand)

    Returns:
        Dict of hyperparameter values

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON object
    """
    config_path = Path(path)
    with open(config_path, 'r') as f:
        config = json.load(f)

    if not isinstance(config, dict):
        raise ValueError(f"Hyperparameter file {config_path} must contain a JSON object")

    logger.info(f"Hyperparameters loaded: {config_path}")
    return config
