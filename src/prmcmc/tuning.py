"""
Adaptive proposal tuning state.

Each adaptive Metropolis-Hastings proposal owns exactly one TuningRecord,
keyed by the proposal's registry name. The engine hands a proposal its own
record (never another proposal's) on every invocation; the proposal records
its tries/accepts and calls adapt(), which nudges the step sizes toward the
target acceptance rate once every `update_freq` tries.

Step size adaptation rule (per entry, once per window):
    rate > target:  s <- s + 0.1 * s * (1 - s / upper)
    rate <= target: s <- s - 0.1 * s * (1 - lower / s)
so step sizes never leave [lower, upper].

To add a new adaptive proposal:
1. Add a TUNING_DEFAULTS entry keyed by the proposal name
2. Size its record in build_tuning_state
3. Register the proposal with kind=UpdateKind.ADAPTIVE_MH
"""

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np


# (initial step, lower bound, upper bound, target acceptance, window length)
TUNING_DEFAULTS = {
    'mh_for_theta_active': (1.0, 0.1, 99.9, 0.44, 25),
    'mh_for_beta': (1.0, 0.1, 99.9, 0.44, 25),
    'mh_for_alpha': (2.0, 0.1, 99.9, 0.44, 10),
    'mh_for_lambda': (1.0, 0.1, 99.9, 0.44, 500),
    'mh_for_rho_omega': (0.5, 0.0001, 9.9999, 0.44, 10),
}


@dataclass
class TuningRecord:
    """
    Step sizes and acceptance bookkeeping for one adaptive proposal.

    All arrays share `shape`, one entry per independently tuned component
    (e.g. one per outcome category for cluster coefficients).
    """
    name: str
    std_dev: np.ndarray
    lower: float
    upper: float
    accept_target: float
    update_freq: int
    n_tries: np.ndarray = None
    n_accepts: np.ndarray = None
    window_tries: np.ndarray = None
    window_accepts: np.ndarray = None
    rate_trace: np.ndarray = None
    n_windows: int = 0
    adapting: bool = True

    def __post_init__(self):
        self.std_dev = np.asarray(self.std_dev, dtype=np.float64)
        shape = self.std_dev.shape
        if self.n_tries is None:
            self.n_tries = np.zeros(shape, dtype=np.int64)
        if self.n_accepts is None:
            self.n_accepts = np.zeros(shape, dtype=np.int64)
        if self.window_tries is None:
            self.window_tries = np.zeros(shape, dtype=np.int64)
        if self.window_accepts is None:
            self.window_accepts = np.zeros(shape, dtype=np.int64)
        if self.rate_trace is None:
            self.rate_trace = np.zeros((0,) + shape, dtype=np.float64)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.std_dev.shape

    def record(self, accepted, tries=1, index=...):
        """
        Count one batch of tries.

        Args:
            accepted: Number of accepts (scalar or array broadcastable to index)
            tries: Number of tries in this batch
            index: Entry (or slice) of the record being updated
        """
        accepted = np.asarray(accepted, dtype=np.int64)
        tries = np.asarray(tries, dtype=np.int64)
        self.n_tries[index] += tries
        self.n_accepts[index] += accepted
        self.window_tries[index] += tries
        self.window_accepts[index] += accepted

    def acceptance_rate(self) -> np.ndarray:
        """Cumulative acceptance rate per entry (0 where nothing was tried)."""
        return np.where(self.n_tries > 0, self.n_accepts / np.maximum(self.n_tries, 1), 0.0)

    def adapt(self) -> None:
        """Adjust step sizes for every entry whose window is full."""
        full = self.window_tries >= self.update_freq
        if not np.any(full):
            return

        rate = np.where(full, self.window_accepts / np.maximum(self.window_tries, 1), 0.0)

        if self.adapting:
            s = self.std_dev
            grow = s + 0.1 * s * (1.0 - s / self.upper)
            shrink = s - 0.1 * s * (1.0 - self.lower / s)
            updated = np.where(rate > self.accept_target, grow, shrink)
            self.std_dev = np.where(full, np.clip(updated, self.lower, self.upper), s)

        if self.n_windows < self.rate_trace.shape[0]:
            self.rate_trace[self.n_windows] = np.where(full, rate, np.nan)
        self.n_windows += 1

        self.window_tries = np.where(full, 0, self.window_tries)
        self.window_accepts = np.where(full, 0, self.window_accepts)


def make_tuning_record(name: str, shape, n_sweeps: int) -> TuningRecord:
    """Create a record from TUNING_DEFAULTS with a rate trace sized from n_sweeps."""
    init, lower, upper, target, freq = TUNING_DEFAULTS[name]
    shape = tuple(int(s) for s in np.atleast_1d(shape)) if np.ndim(shape) else (int(shape),)
    n_windows = max(1, n_sweeps // freq + 1)
    return TuningRecord(
        name=name,
        std_dev=np.full(shape, init, dtype=np.float64),
        lower=lower,
        upper=upper,
        accept_target=target,
        update_freq=freq,
        rate_trace=np.full((n_windows,) + shape, np.nan),
    )


def build_tuning_state(n_sweeps: int, n_covariates: int, n_fixed_effects: int,
                       n_categories_y: int) -> Dict[str, TuningRecord]:
    """
    Build one tuning record per adaptive proposal.

    Args:
        n_sweeps: Total sweeps (sizes the acceptance-rate traces)
        n_covariates: Number of covariates (one rho step size each)
        n_fixed_effects: Number of fixed effects
        n_categories_y: Number of outcome categories (1 for non-categorical outcomes)

    Returns:
        Dict mapping proposal name -> TuningRecord
    """
    n_coef = max(1, n_categories_y - 1)
    return {
        'mh_for_theta_active': make_tuning_record('mh_for_theta_active', n_coef, n_sweeps),
        'mh_for_beta': make_tuning_record('mh_for_beta', (max(1, n_fixed_effects), n_coef), n_sweeps),
        'mh_for_alpha': make_tuning_record('mh_for_alpha', 1, n_sweeps),
        'mh_for_lambda': make_tuning_record('mh_for_lambda', 1, n_sweeps),
        'mh_for_rho_omega': make_tuning_record('mh_for_rho_omega', max(1, n_covariates), n_sweeps),
    }
