from __future__ import annotations

"""
Sanity-check / validation script.

This script intentionally does NOT write into optimal_stopping_model/results/.
It runs a handful of seeded checks and prints key diagnostics to console.
"""

import math

import numpy as np

from .analysis import (
    analytic_success_probability,
    estimate_success_rate,
    find_optimum,
    sweep,
    theoretical_optimal_skip,
)
from .experiments import format_optimum_summary
from .model import draw_permutation, run_trial, simulate_batch


def _pct(x: float) -> str:
    return f"{100.0 * x:.2f}%"


def _check(label: str, ok: bool) -> bool:
    print(f"[VALIDATION] {'OK  ' if ok else 'FAIL'} {label}")
    return ok


def main() -> None:
    seed = 123
    all_ok = True

    # ---- Degenerate cutoffs select the first / last item
    print("[VALIDATION] degenerate cutoffs (n=12)")
    n = 12
    first_ok = True
    last_ok = True
    for i in range(200):
        perm = draw_permutation(n, np.random.default_rng(seed + i))
        first_ok &= run_trial(n, 0, rng=np.random.default_rng(seed + i)) == int(perm[0])
        last_ok &= run_trial(n, n, rng=np.random.default_rng(seed + i)) == int(perm[-1])
    all_ok &= _check("skip=0 always selects the first item", first_ok)
    all_ok &= _check("skip=n always selects the last item", last_ok)
    print("")

    # ---- Batch diagnostics at the theoretical optimum
    n = 100
    k = theoretical_optimal_skip(n)
    _, stats = simulate_batch(n, k, 100_000, rng=np.random.default_rng(seed), return_stats=True)
    assert stats is not None
    print(f"[VALIDATION] batch diagnostics n={n}, skip={k}, trials={stats.trials}, seed={seed}")
    print(f"success_rate={_pct(stats.success_rate)}")
    print(f"fallback_fraction={_pct(stats.fallback_fraction)}  (expected ≈ skip/n = {_pct(k / n)})")
    print(f"mean_selected_rank={stats.mean_selected_rank:.6g}")
    print("")

    # ---- Monte Carlo vs closed form
    print("[VALIDATION] Monte Carlo vs analytic")
    for n_i, k_i, trials, tol in [(100, 37, 100_000, 0.02), (10, 3, 20_000, 0.03)]:
        est = estimate_success_rate(n_i, k_i, trials, seed=seed)
        ana = analytic_success_probability(n_i, k_i)
        print(f"n={n_i}, skip={k_i}, trials={trials}: estimate={est:.6f} analytic={ana:.6f}")
        all_ok &= _check(f"|estimate - analytic| <= {tol}", abs(est - ana) <= tol)
    print("")

    # ---- Optimum tracking
    print("[VALIDATION] optimum vs floor(n/e)")
    for n_i in [50, 100, 250]:
        best_skip, best_p = find_optimum(sweep(n_i, mode="analytic"))
        theory = theoretical_optimal_skip(n_i)
        print(f"n={n_i}: {format_optimum_summary(best_skip, best_p, n=n_i)}")
        all_ok &= _check(f"|optimum - floor(n/e)| <= 2 for n={n_i}", abs(best_skip - theory) <= 2)
    print(f"1/e = {1.0 / math.e:.6f}")
    print("")

    if all_ok:
        print("[VALIDATION COMPLETE] Model behaviour consistent with closed form.")
        print("Ready for full sweeps.")
    else:
        print("[VALIDATION COMPLETE] Some checks failed; investigate before full sweeps.")


if __name__ == "__main__":
    main()
