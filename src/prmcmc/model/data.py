"""
Profile regression data import.

Input files are whitespace-separated token streams (line breaks carry no
meaning). The data file holds a header followed by one row per subject:

    n_subjects
    n_covariates
    covariate names                       (n_covariates tokens)
    n_fixed_effects
    fixed effect names                    (n_fixed_effects tokens)
    n_categories_y                        (Categorical outcome only)
    n_discrete n_continuous               (Mixed covariates only)
    categories per discrete covariate     (Discrete and Mixed only)
    rows: y x_1 .. x_J w_1 .. w_F [n_trials (Binomial) | offset (Poisson)]

Discrete covariates are coded 0..K_j-1 and come before the continuous ones.
A covariate value of -999 marks it missing; the outcome and fixed effects
may not be missing.

The optional prediction file holds n_predict followed by n_predict rows of
covariates in the same coding.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
import jax.numpy as jnp

from ..error_handling import DataFormatError
from ..options import CovariateType, OutcomeType

import logging
logger = logging.getLogger('prmcmc')

MISSING_VALUE = -999


@dataclass(frozen=True)
class ProfileData:
    """
    Observed data for one run.

    Fitting subjects occupy rows 0..n_subjects-1 of `x` and `missing`;
    prediction subjects follow. Missing covariates hold their current
    imputed value in `x`.
    """
    n_subjects: int
    n_covariates: int
    n_fixed_effects: int
    n_categories_y: int
    n_discrete: int
    n_continuous: int
    covariate_names: Tuple[str, ...]
    fixed_effect_names: Tuple[str, ...]
    n_categories: np.ndarray       # (n_discrete,) categories per discrete covariate
    y: jnp.ndarray                 # (n_subjects,)
    x: jnp.ndarray                 # (n_subjects + n_predict, n_covariates)
    w: jnp.ndarray                 # (n_subjects, n_fixed_effects)
    missing: np.ndarray            # (n_subjects + n_predict, n_covariates) bool
    n_trials: Optional[jnp.ndarray] = None
    log_offset: Optional[jnp.ndarray] = None
    n_predict: int = 0
    null_phi: jnp.ndarray = field(default=None, repr=False)   # (n_discrete, max categories)
    null_mu: jnp.ndarray = field(default=None, repr=False)    # (n_continuous,)

    @property
    def has_missing(self) -> bool:
        return bool(np.any(self.missing))

    @property
    def n_total(self) -> int:
        return self.n_subjects + self.n_predict

    @property
    def max_categories(self) -> int:
        return int(np.max(self.n_categories)) if self.n_discrete else 0

    @property
    def category_mask(self) -> jnp.ndarray:
        """(n_discrete, max_categories) True where a category exists."""
        return jnp.arange(self.max_categories)[None, :] < jnp.asarray(self.n_categories)[:, None]


class _TokenReader:
    """Sequential reader over a file's whitespace-separated tokens."""

    def __init__(self, path):
        with open(path, 'r') as f:
            self.tokens = f.read().split()
        self.path = str(path)
        self.pos = 0

    def _next(self, label):
        if self.pos >= len(self.tokens):
            raise DataFormatError(f"{self.path}: unexpected end of file reading {label}")
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def next_int(self, label, minimum=None):
        token = self._next(label)
        try:
            value = int(token)
        except ValueError:
            raise DataFormatError(f"{self.path}: expected integer for {label}, got {token!r}") from None
        if minimum is not None and value < minimum:
            raise DataFormatError(f"{self.path}: {label} must be >= {minimum}, got {value}")
        return value

    def next_float(self, label):
        token = self._next(label)
        try:
            return float(token)
        except ValueError:
            raise DataFormatError(f"{self.path}: expected number for {label}, got {token!r}") from None

    def next_str(self, label):
        return self._next(label)

    def finish(self):
        if self.pos != len(self.tokens):
            raise DataFormatError(
                f"{self.path}: {len(self.tokens) - self.pos} unexpected trailing values"
            )


def _read_covariate_row(reader, n_covariates, row_label):
    return [reader.next_float(f"{row_label} covariate {j + 1}") for j in range(n_covariates)]


def _check_covariates(x, n_discrete, n_categories, path):
    """Discrete columns must hold integer codes below their category count."""
    observed = x != MISSING_VALUE
    for j in range(n_discrete):
        col = x[observed[:, j], j]
        bad = (col != np.round(col)) | (col < 0) | (col >= n_categories[j])
        if np.any(bad):
            raise DataFormatError(
                f"{path}: discrete covariate {j + 1} has values outside 0..{n_categories[j] - 1}"
            )


def _check_outcome(y, outcome_type, n_categories_y, n_trials, path):
    if np.any(y == MISSING_VALUE):
        raise DataFormatError(f"{path}: missing outcome values are not supported")

    integer = np.all(y == np.round(y))
    if outcome_type == OutcomeType.BERNOULLI and not np.all((y == 0) | (y == 1)):
        raise DataFormatError(f"{path}: Bernoulli outcomes must be 0 or 1")
    if outcome_type == OutcomeType.BINOMIAL and not (integer and np.all((y >= 0) & (y <= n_trials))):
        raise DataFormatError(f"{path}: Binomial outcomes must be integers in 0..n_trials")
    if outcome_type == OutcomeType.POISSON and not (integer and np.all(y >= 0)):
        raise DataFormatError(f"{path}: Poisson outcomes must be non-negative integers")
    if outcome_type == OutcomeType.CATEGORICAL and not (
            integer and np.all((y >= 0) & (y < n_categories_y))):
        raise DataFormatError(f"{path}: Categorical outcomes must be integers in 0..{n_categories_y - 1}")


def _null_distributions(x, missing, n_discrete, n_categories):
    """Empirical category frequencies and column means of the observed covariates."""
    max_cat = int(np.max(n_categories)) if n_discrete else 0
    null_phi = np.zeros((n_discrete, max_cat))
    for j in range(n_discrete):
        col = x[~missing[:, j], j].astype(int)
        counts = np.bincount(col, minlength=max_cat).astype(float)
        if counts.sum() == 0:
            counts[:n_categories[j]] = 1.0
        null_phi[j] = counts / counts.sum()

    cont = x[:, n_discrete:]
    cont_missing = missing[:, n_discrete:]
    null_mu = np.zeros(cont.shape[1])
    for j in range(cont.shape[1]):
        observed = cont[~cont_missing[:, j], j]
        null_mu[j] = observed.mean() if observed.size else 0.0
    return null_phi, null_mu


def import_profile_data(data_path, predict_path=None, options=None) -> ProfileData:
    """
    Read the data file (and prediction file) for a run.

    Args:
        data_path: Path of the data file
        predict_path: Optional path of the prediction file
        options: SamplerOptions; selects which header fields and columns exist

    Returns:
        ProfileData

    Raises:
        DataFormatError: If a file is malformed or inconsistent with the options
        OSError: If a file cannot be read
    """
    outcome_type = options.outcome_type
    covariate_type = options.covariate_type
    if outcome_type == OutcomeType.SURVIVAL:
        raise DataFormatError("Survival outcomes are not supported by the profile_regression model")

    reader = _TokenReader(data_path)
    n_subjects = reader.next_int('n_subjects', minimum=1)
    n_covariates = reader.next_int('n_covariates', minimum=1)
    covariate_names = tuple(reader.next_str(f"covariate name {j + 1}") for j in range(n_covariates))
    n_fixed_effects = reader.next_int('n_fixed_effects', minimum=0)
    fixed_effect_names = tuple(reader.next_str(f"fixed effect name {f + 1}")
                               for f in range(n_fixed_effects))

    n_categories_y = 1
    if outcome_type == OutcomeType.CATEGORICAL:
        n_categories_y = reader.next_int('n_categories_y', minimum=2)

    if covariate_type == CovariateType.MIXED:
        n_discrete = reader.next_int('n_discrete', minimum=0)
        n_continuous = reader.next_int('n_continuous', minimum=0)
        if n_discrete + n_continuous != n_covariates:
            raise DataFormatError(
                f"{data_path}: n_discrete ({n_discrete}) + n_continuous ({n_continuous}) "
                f"!= n_covariates ({n_covariates})"
            )
    elif covariate_type == CovariateType.DISCRETE:
        n_discrete, n_continuous = n_covariates, 0
    else:
        n_discrete, n_continuous = 0, n_covariates

    n_categories = np.array([reader.next_int(f"categories of covariate {j + 1}", minimum=2)
                             for j in range(n_discrete)], dtype=np.int64)

    has_trials = outcome_type == OutcomeType.BINOMIAL
    has_offset = outcome_type == OutcomeType.POISSON

    y = np.zeros(n_subjects)
    x = np.zeros((n_subjects, n_covariates))
    w = np.zeros((n_subjects, n_fixed_effects))
    extra = np.ones(n_subjects)
    for i in range(n_subjects):
        row_label = f"subject {i + 1}"
        y[i] = reader.next_float(f"{row_label} outcome")
        x[i] = _read_covariate_row(reader, n_covariates, row_label)
        for f in range(n_fixed_effects):
            w[i, f] = reader.next_float(f"{row_label} fixed effect {f + 1}")
        if has_trials:
            extra[i] = reader.next_int(f"{row_label} n_trials", minimum=1)
        elif has_offset:
            extra[i] = reader.next_float(f"{row_label} offset")
    reader.finish()

    if np.any(w == MISSING_VALUE):
        raise DataFormatError(f"{data_path}: missing fixed effect values are not supported")
    if has_offset and np.any(extra <= 0):
        raise DataFormatError(f"{data_path}: Poisson offsets must be > 0")
    if options.include_response:
        _check_outcome(y, outcome_type, n_categories_y, extra, data_path)

    n_predict = 0
    if predict_path is not None:
        predict_reader = _TokenReader(predict_path)
        n_predict = predict_reader.next_int('n_predict', minimum=0)
        x_predict = np.array([_read_covariate_row(predict_reader, n_covariates, f"prediction subject {i + 1}")
                              for i in range(n_predict)]).reshape(n_predict, n_covariates)
        predict_reader.finish()
        x = np.vstack([x, x_predict])

    _check_covariates(x, n_discrete, n_categories, data_path)

    missing = x == MISSING_VALUE
    null_phi, null_mu = _null_distributions(x, missing, n_discrete, n_categories)

    # Placeholder imputation so the first sweep starts from finite values
    x = x.copy()
    for j in range(n_covariates):
        if j < n_discrete:
            x[missing[:, j], j] = float(np.argmax(null_phi[j]))
        else:
            x[missing[:, j], j] = null_mu[j - n_discrete]

    logger.info(
        f"Imported {n_subjects} subjects, {n_covariates} covariates "
        f"({n_discrete} discrete, {n_continuous} continuous), {n_fixed_effects} fixed effects"
        + (f", {n_predict} prediction subjects" if n_predict else "")
    )
    if np.any(missing):
        logger.info(f"  {int(missing.sum())} missing covariate values will be imputed")

    return ProfileData(
        n_subjects=n_subjects,
        n_covariates=n_covariates,
        n_fixed_effects=n_fixed_effects,
        n_categories_y=n_categories_y,
        n_discrete=n_discrete,
        n_continuous=n_continuous,
        covariate_names=covariate_names,
        fixed_effect_names=fixed_effect_names,
        n_categories=n_categories,
        y=jnp.asarray(y),
        x=jnp.asarray(x),
        w=jnp.asarray(w),
        missing=missing,
        n_trials=jnp.asarray(extra) if has_trials else None,
        log_offset=jnp.asarray(np.log(extra)) if has_offset else None,
        n_predict=n_predict,
        null_phi=jnp.asarray(null_phi),
        null_mu=jnp.asarray(null_mu),
    )
