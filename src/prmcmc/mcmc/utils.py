def clean_config(config):
    """
    Cleans the config dict and sets defaults.
    All config keys use lowercase with underscores.
    """

    # Define Defaults and retrieve values from dictionary (all lowercase)
    config.setdefault('n_sweeps', 1000)
    config.setdefault('n_burn', 100)
    config.setdefault('n_filter', 1)
    config.setdefault('n_progress', 500)
    config.setdefault('report_burn_in', False)
    config.setdefault('seed', 0)
    config.setdefault('outcome_type', 'Bernoulli')
    config.setdefault('covariate_type', 'Discrete')
    config.setdefault('var_select_type', 'None')
    config.setdefault('sampler_type', 'SliceDependent')
    config.setdefault('fixed_alpha', -2.0)
    config.setdefault('include_response', True)
    config.setdefault('response_extra_var', False)
    config.setdefault('n_clus_init', 0)
    config.setdefault('max_n_clusters', 50)
    config.setdefault('use_double', True)
    config.setdefault('input_file', 'input.txt')
    config.setdefault('output_stem', 'output')
    config.setdefault('hyper_file', None)
    config.setdefault('predict_file', None)

    return config
