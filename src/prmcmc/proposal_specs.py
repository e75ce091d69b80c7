"""
Proposal Specification System

This module defines the descriptor for one update rule ("proposal") in the
sampler's registry and the validation applied when a registry is built.

A ProposalSpec is created once while proposals are composed, is immutable
afterwards, and is invoked on every sweep from first_sweep onward.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List
from enum import IntEnum


# ============================================================================
# UPDATE KIND ENUMERATION
# ============================================================================

class UpdateKind(IntEnum):
    """
    How an update rule draws its new values.

    Informational only: the engine invokes every kind the same way.
    """
    GIBBS = 0                # Exact draw from a full conditional
    METROPOLIS_HASTINGS = 1  # Accept/reject on a proposed move
    ADAPTIVE_MH = 2          # MH whose step sizes live in a TuningRecord

    def __str__(self):
        return self.name.replace('_', ' ').title()


# ============================================================================
# PROPOSAL SPECIFICATION
# ============================================================================

@dataclass(frozen=True)
class ProposalSpec:
    """
    Specification for a single update rule.

    Required fields:
        name: Unique registry name (also the key of the proposal's tuning record)
        update_fn: Callable (state, tuning, dataset, key) -> (state, key)

    Optional fields:
        weight: Relative weight (> 0), recorded in the run log
        repeat_count: Invocations per sweep (>= 1)
        first_sweep: First sweep (1-indexed) on which the rule runs
        kind: UpdateKind tag
        metadata: Additional info (not used by the sampler)

    Examples:
        # Gibbs update active from the first sweep
        ProposalSpec('gibbs_for_z', gibbs_for_z)

        # Deferred until a tenth of burn-in has elapsed
        ProposalSpec('gibbs_for_gamma_active', gibbs_for_gamma_active,
                     first_sweep=1 + n_burn // 10)
    """
    name: str
    update_fn: Callable
    weight: float = 1.0
    repeat_count: int = 1
    first_sweep: int = 1
    kind: UpdateKind = UpdateKind.GIBBS
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        """Validate the specification after initialization."""
        if not self.name:
            raise ValueError("Proposal name must be a non-empty string")

        if not callable(self.update_fn):
            raise ValueError(f"Proposal '{self.name}': update_fn must be callable")

        if not self.weight > 0:
            raise ValueError(f"Proposal '{self.name}': weight must be > 0, got {self.weight}")

        if self.repeat_count < 1:
            raise ValueError(
                f"Proposal '{self.name}': repeat_count must be >= 1, got {self.repeat_count}"
            )

        if self.first_sweep < 1:
            raise ValueError(
                f"Proposal '{self.name}': first_sweep must be >= 1, got {self.first_sweep}"
            )

        # Convert to UpdateKind if int was provided
        if isinstance(self.kind, int) and not isinstance(self.kind, UpdateKind):
            object.__setattr__(self, 'kind', UpdateKind(self.kind))

    def is_active(self, sweep: int) -> bool:
        """True if the rule runs on this (1-indexed) sweep."""
        return sweep >= self.first_sweep

    def is_adaptive(self) -> bool:
        return self.kind == UpdateKind.ADAPTIVE_MH

    def __repr__(self):
        """Pretty string representation for debugging."""
        parts = [f"ProposalSpec(name={self.name!r}, kind={self.kind!s}"]
        if self.first_sweep != 1:
            parts.append(f"first_sweep={self.first_sweep}")
        if self.repeat_count != 1:
            parts.append(f"repeat_count={self.repeat_count}")
        if self.weight != 1.0:
            parts.append(f"weight={self.weight}")
        return ", ".join(parts) + ")"


# ============================================================================
# VALIDATION
# ============================================================================

def validate_proposal_specs(specs: List[ProposalSpec], n_sweeps: int) -> None:
    """
    Validate a complete registry.

    Args:
        specs: Ordered list of ProposalSpec objects
        n_sweeps: Total number of sweeps in the run

    Raises:
        ValueError: If names repeat or a rule could never run
    """
    if not isinstance(specs, list):
        raise ValueError(f"Proposal specs must be a list, got {type(specs)}")

    errors = []
    seen = set()
    for i, spec in enumerate(specs):
        if not isinstance(spec, ProposalSpec):
            errors.append(f"Entry {i} is not a ProposalSpec: {type(spec)}")
            continue
        if spec.name in seen:
            errors.append(f"Duplicate proposal name '{spec.name}'")
        seen.add(spec.name)
        if spec.first_sweep > n_sweeps:
            errors.append(
                f"Proposal '{spec.name}' first_sweep ({spec.first_sweep}) exceeds nSweeps ({n_sweeps})"
            )

    if errors:
        raise ValueError("Invalid proposal registry:\n  " + "\n  ".join(errors))
