from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from . import config


class InvalidParameter(ValueError):
    """Raised when n, skip or trials fall outside their valid range."""


@dataclass(frozen=True)
class TrialBatchStats:
    """Lightweight diagnostics for a batch of trials at one (n, skip)."""

    n: int
    skip: int
    trials: int
    successes: int
    success_rate: float
    fallback_fraction: float  # share of trials resolved by taking the last item
    mean_selected_rank: float


def _require_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidParameter(f"{name} must be an integer, got {value!r}")
    return int(value)


def validate_parameters(n: int, skip: int, trials: Optional[int] = None) -> None:
    """Reject n < 1, skip outside [0, n] and (when given) trials < 1."""
    n = _require_int("n", n)
    skip = _require_int("skip", skip)
    if n < 1:
        raise InvalidParameter(f"n must be >= 1, got {n}")
    if skip < 0:
        raise InvalidParameter(f"skip must be >= 0, got {skip}")
    if skip > n:
        raise InvalidParameter(f"skip must be <= n ({n}), got {skip}")
    if trials is not None:
        trials = _require_int("trials", trials)
        if trials < 1:
            raise InvalidParameter(f"trials must be >= 1, got {trials}")


def draw_permutation(n: int, rng: np.random.Generator) -> np.ndarray:
    """Ranks 1..n in uniformly random order (rank n is the best item)."""
    return rng.permutation(n).astype(np.int64, copy=False) + 1


def select_index(permutation: np.ndarray, skip: int) -> int:
    """
    Apply the look-then-leap rule to a drawn permutation.

    The first `skip` items only set the benchmark. The first later item that
    beats it is taken; items after it are never inspected. If nothing beats
    the benchmark the last item is taken.
    """
    n = len(permutation)
    benchmark = int(np.max(permutation[:skip])) if skip > 0 else 0  # ranks start at 1

    found: Optional[int] = None
    for i in range(skip, n):
        if permutation[i] > benchmark:
            found = i
            break

    if found is None:
        return n - 1
    return found


def run_trial(n: int, skip: int, *, rng: Optional[np.random.Generator] = None) -> int:
    """Run one sequential search and return the rank of the selected item."""
    validate_parameters(n, skip)
    if rng is None:
        rng = np.random.default_rng()

    permutation = draw_permutation(n, rng)
    return int(permutation[select_index(permutation, skip)])


def _select_ranks(perms: np.ndarray, skip: int) -> tuple[np.ndarray, np.ndarray]:
    """Vectorised look/leap over rows of `perms`; returns (selected, used_fallback)."""
    n_rows, n = perms.shape
    last = perms[:, n - 1]
    if skip == n:
        return last.copy(), np.ones(n_rows, dtype=bool)

    if skip > 0:
        benchmark = perms[:, :skip].max(axis=1)
    else:
        benchmark = np.zeros(n_rows, dtype=perms.dtype)

    leap = perms[:, skip:]
    qualifies = leap > benchmark[:, None]
    found = qualifies.any(axis=1)
    first = qualifies.argmax(axis=1)  # first True per row; 0 when none (masked below)
    chosen = leap[np.arange(n_rows), first]
    return np.where(found, chosen, last), ~found


def simulate_batch(
    n: int,
    skip: int,
    trials: int,
    *,
    rng: np.random.Generator,
    return_stats: bool = False,
) -> tuple[np.ndarray, Optional[TrialBatchStats]]:
    """
    Evaluate `trials` independent trials and return the selected ranks.

    Selection semantics match `run_trial` exactly. Permutations are drawn in
    chunks of at most config.MAX_BATCH_CELLS cells.
    """
    validate_parameters(n, skip, trials)

    rows_per_chunk = max(1, config.MAX_BATCH_CELLS // n)
    base = np.arange(1, n + 1, dtype=np.int64)

    selected_parts = []
    fallback_count = 0
    remaining = trials
    while remaining > 0:
        rows = min(rows_per_chunk, remaining)
        perms = rng.permuted(np.tile(base, (rows, 1)), axis=1)
        selected, fallback = _select_ranks(perms, skip)
        selected_parts.append(selected)
        fallback_count += int(np.sum(fallback))
        remaining -= rows
        del perms

    selected = np.concatenate(selected_parts)

    stats: Optional[TrialBatchStats] = None
    if return_stats:
        successes = int(np.sum(selected == n))
        stats = TrialBatchStats(
            n=n,
            skip=skip,
            trials=trials,
            successes=successes,
            success_rate=successes / trials,
            fallback_fraction=fallback_count / trials,
            mean_selected_rank=float(np.mean(selected)),
        )
    return selected, stats
