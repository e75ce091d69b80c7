"""
Model Registration System

This module provides a registry for model bindings that can be driven by the
sampler engine. Model packages register themselves via register_model(), and
the driver retrieves them via get_model().

Example usage:
    from prmcmc import register_model

    register_model('my_model', {
        'import_data': my_importer,
        'initialise': my_initialiser,
        'log_posterior': my_log_posterior,
        'updates': {'gibbs_for_z': my_allocation_update, ...},
        # optional:
        'update_missing': my_missing_data_update,
        'tuning': my_tuning_builder,
        'write_output': my_output_writer,
    })
"""

_REGISTRY = {}

REQUIRED_KEYS = ('import_data', 'initialise', 'log_posterior', 'updates')
OPTIONAL_KEYS = ('update_missing', 'tuning', 'write_output')


def register_model(name, config):
    """
    Register a model binding with the sampler.

    Args:
        name: Unique model identifier string (e.g., 'profile_regression')
        config: Dict containing model functions with keys:

            Required:
                import_data: fn(data_path, predict_path, options) -> dataset
                    Parses the input files. Raises DataFormatError on bad input.

                initialise: fn(dataset, options, key) -> (state, key)
                    Builds the starting chain state.

                log_posterior: fn(state, dataset) -> float
                    Joint log density of the current state.

                updates: Dict[str, fn(state, tuning, dataset, key) -> (state, key)]
                    Update rule library, keyed by registry name.

            Optional:
                update_missing: fn(state, dataset, key) -> (dataset, key)
                    Re-imputes missing observations once per sweep.

                tuning: fn(options, dataset) -> Dict[str, TuningRecord]
                    Builds the adaptive tuning records.

                write_output: fn(files, sweep, state, dataset, tuning, log_post) -> None
                    Writes one chain snapshot.

    Raises:
        ValueError: If required keys are missing or name is already registered.
    """
    if name in _REGISTRY:
        raise ValueError(f"Model '{name}' is already registered")

    missing = [k for k in REQUIRED_KEYS if k not in config]
    if missing:
        raise ValueError(f"Missing required keys for model '{name}': {missing}")

    unknown = [k for k in config if k not in REQUIRED_KEYS + OPTIONAL_KEYS]
    if unknown:
        raise ValueError(f"Unknown keys for model '{name}': {unknown}")

    _REGISTRY[name] = config


def get_model(name):
    """
    Get a registered model binding by name.

    Raises:
        KeyError: If the model is not registered
    """
    if name not in _REGISTRY:
        available = list(_REGISTRY.keys())
        raise KeyError(f"Unknown model '{name}'. Available: {available}")
    return _REGISTRY[name]


def list_models():
    """List all registered model names."""
    return list(_REGISTRY.keys())


def clear_registry():
    """
    Clear all registered models. Primarily for testing.
    """
    _REGISTRY.clear()
