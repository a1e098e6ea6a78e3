from __future__ import annotations

import math
from pathlib import Path
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from . import config
from .analysis import (
    analytic_success_probability,
    find_optimum,
    sweep,
    sweep_to_frame,
    theoretical_optimal_skip,
)
from .io_utils import (
    atomic_write_csv,
    read_csv_or_empty,
    results_root,
    seed_indices_present,
    upsert_row,
)
from .model import simulate_batch

SEED_COLS = [
    "run_id",
    "n",
    "skip",
    "seed_index",
    "seed",
    "trials",
    "successes",
    "success_rate",
    "fallback_fraction",
    "mean_selected_rank",
]
SUMMARY_COLS = [
    "run_id",
    "n",
    "skip",
    "mean_success_rate",
    "std_success_rate",
    "analytic_probability",
    "abs_error",
    "trials_per_seed",
    "n_seeds",
]
CONVERGENCE_COLS = [
    "run_id",
    "n",
    "skip",
    "trials",
    "seed",
    "estimate",
    "analytic_probability",
    "abs_error",
    "rel_error",
]


def _mode_suffix(mode: str) -> str:
    return "" if mode == "full" else f"_{mode}"


def _seed_for(*, base_seed: int, sweep_offset: int, seed_index: int) -> int:
    # Paired across skip values: every cutoff sees the same permutations per seed_index.
    return int(base_seed + sweep_offset * 1000 + seed_index)


def _std_across_seeds(x: pd.Series) -> float:
    if len(x) <= 1:
        return 0.0
    return float(x.std(ddof=1))


def _ensure_csv_with_headers(path: Path, columns: list[str]) -> None:
    if path.exists():
        return
    atomic_write_csv(pd.DataFrame(columns=columns), path)


def _append_row(df: pd.DataFrame, row: dict) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame([row])
    return pd.concat([df, pd.DataFrame([row])], ignore_index=True)


def analytic_sweep_path(*, mode: str, n: int) -> Path:
    return results_root() / "analytic" / f"analytic_sweep_n{n}{_mode_suffix(mode)}.csv"


def monte_carlo_paths(*, mode: str, n: int) -> tuple[Path, Path]:
    """Return (summary_path, seed_path) for a Monte Carlo sweep."""
    out_dir = results_root() / "monte_carlo"
    suffix = _mode_suffix(mode)
    return (
        out_dir / f"mc_sweep_n{n}_summary{suffix}.csv",
        out_dir / f"mc_sweep_n{n}_seed_diagnostics{suffix}.csv",
    )


def convergence_path(*, mode: str, n: int) -> Path:
    return results_root() / "convergence" / f"convergence_n{n}{_mode_suffix(mode)}.csv"


def format_optimum_summary(best_skip: int, best_probability: float, *, n: Optional[int] = None) -> str:
    """One-line report, e.g. 'Optimal skip = 37, success ≈ 37.1%'."""
    text = f"Optimal skip = {best_skip}, success ≈ {100.0 * best_probability:.1f}%"
    if n is not None:
        text += f" (theory: floor(n/e) = {theoretical_optimal_skip(n)})"
    return text


def run_analytic_sweep(
    *,
    mode: str,
    n: int,
    logger_info: Callable[[str], None],
) -> Path:
    """Closed-form success curve for every skip in 0..n."""
    out_path = analytic_sweep_path(mode=mode, n=n)
    logger_info(f"START analytic sweep: n={n}")

    result = sweep(n, mode="analytic")
    df = sweep_to_frame(result)
    df.insert(0, "n", int(n))
    df.insert(0, "run_id", f"secretary_{mode}")
    atomic_write_csv(df, out_path)

    best_skip, best_p = find_optimum(result)
    logger_info(f"analytic: {format_optimum_summary(best_skip, best_p, n=n)}")
    logger_info(f"END analytic sweep: wrote {out_path.name}")
    return out_path


def run_monte_carlo_sweep(
    *,
    mode: str,
    n: int,
    n_trials: int,
    n_seeds: int,
    skip_stride: int,
    logger_warn: Callable[[str], None],
    logger_info: Callable[[str], None],
) -> Path:
    """
    Simulated success curve, resumable per (n, skip, trials, seed_index).

    Rows for a different trial count are kept but never mixed into this run's
    summary; each trial count gets its own summary rows.

    Seed-level rows go to the diagnostics CSV; the summary CSV holds the
    across-seed mean/std next to the closed-form value.
    """
    sweep_offset = 0
    run_id = f"secretary_{mode}"
    summary_path, seed_path = monte_carlo_paths(mode=mode, n=n)
    suffix = _mode_suffix(mode)

    skips = list(range(0, n + 1, max(1, skip_stride)))
    if skips[-1] != n:
        skips.append(n)

    logger_info(
        f"START monte_carlo sweep: n={n} skips={len(skips)} trials={n_trials} seeds={n_seeds}"
    )

    _ensure_csv_with_headers(seed_path, SEED_COLS)
    _ensure_csv_with_headers(summary_path, SUMMARY_COLS)

    seed_df = read_csv_or_empty(seed_path, expected_columns=SEED_COLS)
    summary_df = read_csv_or_empty(summary_path, expected_columns=SUMMARY_COLS)

    for skip in tqdm(skips, desc=f"monte_carlo{suffix}", leave=True):
        key = {"n": int(n), "skip": int(skip), "trials": int(n_trials)}
        present = seed_indices_present(seed_df, key=key, seed_index_col="seed_index")
        if len(present) >= n_seeds:
            continue

        missing = [i for i in range(n_seeds) if i not in present]
        logger_info(f"monte_carlo: running skip={skip} missing_seeds={missing}")

        for seed_index in missing:
            seed = _seed_for(base_seed=config.BASE_SEED, sweep_offset=sweep_offset, seed_index=seed_index)
            rng = np.random.default_rng(seed)
            _, stats = simulate_batch(n, skip, n_trials, rng=rng, return_stats=True)
            assert stats is not None

            row = {
                "run_id": run_id,
                "n": int(n),
                "skip": int(skip),
                "seed_index": int(seed_index),
                "seed": int(seed),
                "trials": int(stats.trials),
                "successes": int(stats.successes),
                "success_rate": float(stats.success_rate),
                "fallback_fraction": float(stats.fallback_fraction),
                "mean_selected_rank": float(stats.mean_selected_rank),
            }
            seed_df = _append_row(seed_df, row)
            atomic_write_csv(seed_df, seed_path)

        # Recompute aggregated row for this skip and upsert into summary
        mask = (
            (seed_df["n"] == int(n))
            & (seed_df["skip"] == int(skip))
            & (seed_df["trials"] == int(n_trials))
        )
        seed_rows = seed_df.loc[mask]
        pooled_trials = int(seed_rows["trials"].sum())
        mean_rate = int(seed_rows["successes"].sum()) / pooled_trials
        analytic = analytic_success_probability(n, skip)
        abs_error = abs(mean_rate - analytic)

        # Four binomial standard errors of the pooled estimate
        tolerance = 4.0 * math.sqrt(max(analytic * (1.0 - analytic), 1e-12) / pooled_trials)
        if abs_error > tolerance:
            logger_warn(
                f"monte_carlo: skip={skip} estimate {mean_rate:.6g} deviates from analytic "
                f"{analytic:.6g} by {abs_error:.3g} (> {tolerance:.3g})"
            )

        summary_row = {
            "run_id": run_id,
            "n": int(n),
            "skip": int(skip),
            "mean_success_rate": mean_rate,
            "std_success_rate": _std_across_seeds(seed_rows["success_rate"]),
            "analytic_probability": analytic,
            "abs_error": abs_error,
            "trials_per_seed": int(n_trials),
            "n_seeds": int(len(seed_rows)),
        }
        summary_df = upsert_row(summary_df, summary_row, key_cols=["n", "skip", "trials_per_seed"])
        summary_df = summary_df[SUMMARY_COLS]
        atomic_write_csv(summary_df, summary_path)

    done = summary_df[
        (summary_df["n"] == int(n))
        & (summary_df["trials_per_seed"] == int(n_trials))
        & (summary_df["n_seeds"] >= n_seeds)
    ]
    if done.empty:
        logger_warn("monte_carlo: no completed skips; optimum not estimated")
    else:
        done = done.sort_values("skip")
        pairs = list(zip(done["skip"].astype(int), done["mean_success_rate"].astype(float)))
        best_skip, best_p = find_optimum(pairs)
        theory = theoretical_optimal_skip(n)
        logger_info(f"monte_carlo: {format_optimum_summary(best_skip, best_p, n=n)}")
        if n >= 50 and abs(best_skip - theory) > 2 and skip_stride <= 1:
            logger_warn(
                f"monte_carlo: empirical optimum {best_skip} is more than 2 away from floor(n/e)={theory}"
            )

    logger_info("END monte_carlo sweep")
    return summary_path


def run_convergence(
    *,
    mode: str,
    n: int,
    trial_counts: Sequence[int],
    logger_info: Callable[[str], None],
) -> Path:
    """Estimate at floor(n/e) for increasing trial counts (resumable per trials)."""
    sweep_offset = 1
    run_id = f"secretary_{mode}"
    out_path = convergence_path(mode=mode, n=n)

    skip = theoretical_optimal_skip(n)
    analytic = analytic_success_probability(n, skip)
    logger_info(f"START convergence: n={n} skip={skip} trials in {list(trial_counts)}")

    _ensure_csv_with_headers(out_path, CONVERGENCE_COLS)
    df = read_csv_or_empty(out_path, expected_columns=CONVERGENCE_COLS)

    for i, trials in enumerate(tqdm(trial_counts, desc=f"convergence{_mode_suffix(mode)}", leave=True)):
        if not df.empty and bool(((df["n"] == int(n)) & (df["trials"] == int(trials))).any()):
            continue

        seed = _seed_for(base_seed=config.BASE_SEED, sweep_offset=sweep_offset, seed_index=i)
        rng = np.random.default_rng(seed)
        selected, _ = simulate_batch(n, skip, int(trials), rng=rng)
        estimate = int(np.sum(selected == n)) / int(trials)
        abs_error = abs(estimate - analytic)

        row = {
            "run_id": run_id,
            "n": int(n),
            "skip": int(skip),
            "trials": int(trials),
            "seed": int(seed),
            "estimate": float(estimate),
            "analytic_probability": float(analytic),
            "abs_error": float(abs_error),
            "rel_error": float(abs_error / analytic),
        }
        df = upsert_row(df, row, key_cols=["n", "trials"])
        df = df[CONVERGENCE_COLS]
        atomic_write_csv(df, out_path)
        logger_info(f"convergence: trials={trials:,} p_hat={estimate:.6f} rel_error={abs_error / analytic:.4%}")

    logger_info("END convergence")
    return out_path
