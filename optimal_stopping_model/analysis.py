from __future__ import annotations

import math
from typing import Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from .model import InvalidParameter, simulate_batch, validate_parameters

SweepResult = list[tuple[int, float]]

MODES = ("analytic", "monte_carlo")


def estimate_success_rate(
    n: int,
    skip: int,
    trials: int,
    seed: Optional[int] = None,
    *,
    rng: Optional[np.random.Generator] = None,
) -> float:
    """
    Monte Carlo estimate of P(select the best item) for cutoff `skip`.

    Runs exactly `trials` independent trials. With a fixed seed the result is
    fully deterministic.
    """
    validate_parameters(n, skip, trials)
    if seed is not None and rng is not None:
        raise InvalidParameter("pass either seed or rng, not both")
    if rng is None:
        rng = np.random.default_rng(seed)

    selected, _ = simulate_batch(n, skip, trials, rng=rng)
    return int(np.sum(selected == n)) / trials


def analytic_success_probability(n: int, skip: int) -> float:
    """
    Closed-form success probability of the cutoff rule.

        P(skip) = (skip / n) * sum_{j=skip}^{n-1} 1/j      for 1 <= skip < n

    skip = 0 takes the first item and skip = n takes the last; both succeed
    with probability 1/n.
    """
    validate_parameters(n, skip)
    if skip == 0 or skip == n:
        return 1.0 / n

    tail = 0.0
    for j in range(skip, n):
        tail += 1.0 / j
    return (skip / n) * tail


def theoretical_optimal_skip(n: int) -> int:
    """floor(n / e): the asymptotically optimal number of items to skip."""
    validate_parameters(n, 0)
    return int(math.floor(n / math.e))


def _resolve_skips(n: int, skip_range: Optional[Iterable[int]]) -> list[int]:
    validate_parameters(n, 0)
    skips = list(range(0, n + 1)) if skip_range is None else list(skip_range)
    for k in skips:
        validate_parameters(n, k)
    return [int(k) for k in skips]


def sweep(
    n: int,
    skip_range: Optional[Iterable[int]] = None,
    mode: str = "analytic",
    trials: Optional[int] = None,
    *,
    seed: Optional[int] = None,
    progress: bool = False,
) -> SweepResult:
    """
    Success probability for each skip in `skip_range` (default 0..n).

    In monte_carlo mode every skip draws from its own child stream spawned
    from SeedSequence(seed), so the curve is reproducible for a fixed seed and
    each point is independent of the order the points are evaluated in.
    """
    if mode not in MODES:
        raise InvalidParameter(f"mode must be one of {MODES}, got {mode!r}")
    skips = _resolve_skips(n, skip_range)
    if trials is not None:
        validate_parameters(n, 0, trials)

    if mode == "analytic":
        return [(k, analytic_success_probability(n, k)) for k in skips]

    if trials is None:
        raise InvalidParameter("trials is required for monte_carlo mode")

    children = np.random.SeedSequence(seed).spawn(len(skips))
    out: SweepResult = []
    iterator = zip(skips, children)
    if progress:
        iterator = tqdm(iterator, total=len(skips), desc=f"sweep n={n}", leave=False)
    for k, child in iterator:
        rng = np.random.default_rng(child)
        out.append((k, estimate_success_rate(n, k, trials, rng=rng)))
    return out


def find_optimum(
    sweep_result: Union[Sequence[tuple[int, float]], Mapping[int, float]],
) -> tuple[int, float]:
    """Arg-max of a sweep; ties go to the smallest skip. NaN entries are ignored."""
    items = list(sweep_result.items()) if isinstance(sweep_result, Mapping) else list(sweep_result)
    if not items:
        raise InvalidParameter("sweep_result is empty")

    best_skip, best_p = None, -math.inf
    for k, p in sorted(items, key=lambda kv: kv[0]):
        if math.isfinite(p) and p > best_p:
            best_skip, best_p = int(k), float(p)
    if best_skip is None:
        raise InvalidParameter("sweep_result has no finite probability")
    return best_skip, best_p


def sweep_to_frame(sweep_result: Sequence[tuple[int, float]]) -> pd.DataFrame:
    df = pd.DataFrame(list(sweep_result), columns=["skip", "probability"])
    df["skip"] = df["skip"].astype(np.int64)
    df["probability"] = df["probability"].astype(np.float64)
    return df
