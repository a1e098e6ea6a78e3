"""
Visualisation utilities for optimal_stopping_model.

This module is intentionally *read-only* with respect to numerical results:
it only reads existing CSVs under results/ and writes figure files under
results/figures/.
"""

from __future__ import annotations

import math
import os
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from . import config
from .analysis import find_optimum, theoretical_optimal_skip
from .experiments import analytic_sweep_path, convergence_path, monte_carlo_paths
from .io_utils import results_root


COLOURS = {
    "analytic":  "#0072B2",  # blue
    "theory":    "#D55E00",  # orange
    "empirical": "#009E73",  # green
}


def _try_import_seaborn() -> tuple[bool, object | None]:
    try:
        import seaborn as sns  # type: ignore

        return True, sns
    except ImportError:
        return False, None


def _read_csv_prefer_full(
    full_path: str, *, fallback_path: str | None = None, label: str
) -> Optional[pd.DataFrame]:
    try:
        return pd.read_csv(full_path)
    except FileNotFoundError:
        if fallback_path is not None:
            try:
                print(f"[WARN] Missing {label} at {full_path}; falling back to {fallback_path}")
                return pd.read_csv(fallback_path)
            except FileNotFoundError:
                pass
        print(f"[WARN] Missing {label} CSV: {full_path}")
        return None


def _col(df: pd.DataFrame, *names: str) -> str:
    for n in names:
        if n in df.columns:
            return n
    raise KeyError(f"Missing required column (tried: {names}); have: {list(df.columns)}")


def _pick_main_run(df: pd.DataFrame) -> pd.DataFrame:
    """
    If the summary holds several trial counts, keep the rows of the largest
    trials_per_seed so one curve never mixes runs of different precision.
    """
    if "trials_per_seed" not in df.columns:
        return df.copy()
    t = pd.to_numeric(df["trials_per_seed"], errors="coerce")
    if t.dropna().nunique() <= 1:
        return df.copy()
    return df[t == t.max()].copy()


def _compute_ci95(df: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
    """
    95% CI for mean_success_rate from the binomial standard error of the
    pooled trials:
      p +/- 1.96 * sqrt(p * (1 - p) / (trials_per_seed * n_seeds))
    Returns (lower, upper) arrays clipped to [0, 1].
    """
    p = pd.to_numeric(df[_col(df, "mean_success_rate")], errors="coerce").to_numpy()
    t = pd.to_numeric(df[_col(df, "trials_per_seed")], errors="coerce").to_numpy()
    s = pd.to_numeric(df[_col(df, "n_seeds")], errors="coerce").to_numpy()

    with np.errstate(divide="ignore", invalid="ignore"):
        half = 1.96 * np.sqrt(p * (1.0 - p) / (t * s))
    return np.clip(p - half, 0.0, 1.0), np.clip(p + half, 0.0, 1.0)


def _paths(mode: str, n: int, kind: str) -> tuple[str, str | None]:
    """Return (preferred, fallback) paths; full runs fall back to _quick outputs."""
    if kind == "analytic":
        full = analytic_sweep_path(mode=mode, n=n)
        quick = analytic_sweep_path(mode="quick", n=n)
    elif kind == "monte_carlo":
        full = monte_carlo_paths(mode=mode, n=n)[0]
        quick = monte_carlo_paths(mode="quick", n=n)[0]
    else:
        full = convergence_path(mode=mode, n=n)
        quick = convergence_path(mode="quick", n=n)
    fallback = str(quick) if mode == "full" else None
    return str(full), fallback


def generate_main_figure(*, mode: str = "full", n: Optional[int] = None) -> Optional[str]:
    """
    Load existing CSV outputs (if present) and generate the 2-panel Figure 1.

    Panel (A) is the success curve P(skip) with the theoretical floor(n/e)
    and empirical optimum marked; panel (B) is Monte Carlo convergence at
    floor(n/e). Returns the PNG path, or None if nothing could be plotted.
    """

    # Imports and style
    has_sns, sns = _try_import_seaborn()
    import matplotlib as mpl
    import matplotlib.pyplot as plt

    if has_sns:
        sns.set_theme(style="whitegrid")  # type: ignore[union-attr]

    # rcParams should override seaborn theme if seaborn is present
    mpl.rcParams.update(
        {
            "font.family": "serif",
            "font.size": 11,
            "axes.titlesize": 12,
            "axes.labelsize": 11,
            "xtick.labelsize": 10,
            "ytick.labelsize": 10,
            "legend.fontsize": 10,
            "axes.linewidth": 1.0,
            "lines.linewidth": 1.5,
            "grid.linewidth": 0.6,
        }
    )

    if n is None:
        n = config.N_ITEMS if mode == "full" else config.N_ITEMS_QUICK
    results_dir = str(results_root())

    analytic_path, analytic_fb = _paths(mode, n, "analytic")
    mc_path, mc_fb = _paths(mode, n, "monte_carlo")
    conv_path, conv_fb = _paths(mode, n, "convergence")

    df_a = _read_csv_prefer_full(analytic_path, fallback_path=analytic_fb, label="analytic_sweep")
    df_mc = _read_csv_prefer_full(mc_path, fallback_path=mc_fb, label="mc_sweep_summary")
    df_cv = _read_csv_prefer_full(conv_path, fallback_path=conv_fb, label="convergence")

    if df_a is None and df_mc is None and df_cv is None:
        print("[WARN] No result CSVs found; skipping figure generation.")
        return None

    fig, (ax_curve, ax_conv) = plt.subplots(1, 2, figsize=(14, 5.5))
    any_panel = False
    theory = theoretical_optimal_skip(n)

    # Panel (A): success probability vs skip
    try:
        if df_a is None and df_mc is None:
            raise FileNotFoundError(analytic_path)

        optimum: Optional[tuple[int, float]] = None
        if df_a is not None and not df_a.empty:
            d = df_a.copy()
            x = pd.to_numeric(d[_col(d, "skip")], errors="coerce").to_numpy()
            y = pd.to_numeric(d[_col(d, "probability")], errors="coerce").to_numpy()
            ax_curve.plot(x, y, "-", color=COLOURS["analytic"], label="analytic")
            optimum = find_optimum(list(zip(x.astype(int), y)))

        if df_mc is not None and not df_mc.empty:
            d = _pick_main_run(df_mc)
            d["skip"] = pd.to_numeric(d[_col(d, "skip")], errors="coerce")
            d = d.dropna(subset=["skip"]).sort_values("skip")
            x = d["skip"].to_numpy()
            y = pd.to_numeric(d[_col(d, "mean_success_rate")], errors="coerce").to_numpy()
            lo, hi = _compute_ci95(d)
            ax_curve.errorbar(
                x,
                y,
                yerr=np.vstack([y - lo, hi - y]),
                fmt="o",
                capsize=2,
                color=COLOURS["empirical"],
                ecolor=COLOURS["empirical"],
                markersize=3.5,
                label="Monte Carlo (95% CI)",
            )
            optimum = find_optimum(list(zip(x.astype(int), y)))

        ax_curve.axvline(
            theory,
            linestyle="--",
            color=COLOURS["theory"],
            linewidth=1.0,
            label=rf"$\lfloor n/e \rfloor = {theory}$",
        )
        if optimum is not None:
            best_skip, best_p = optimum
            ax_curve.plot(
                [best_skip],
                [best_p],
                marker="*",
                markersize=13,
                color=COLOURS["empirical"],
                markeredgecolor="#222222",
                linestyle="none",
                label=f"optimum: skip={best_skip}, P={best_p:.3f}",
            )
        ax_curve.axhline(1.0 / math.e, color="black", linewidth=0.8, alpha=0.4)
        ax_curve.set_xlabel(r"skip $k$ (look phase length)")
        ax_curve.set_ylabel("P(select best)")
        ax_curve.set_title(rf"(A) Success probability vs cutoff, $n={n}$")
        ax_curve.set_xlim(0, n)
        ax_curve.set_ylim(bottom=0.0)
        ax_curve.grid(True, axis="y", alpha=0.20)
        ax_curve.grid(False, axis="x")
        ax_curve.legend(loc="upper right", frameon=False, fontsize=9)
        any_panel = True
    except FileNotFoundError:
        print(f"[WARN] success-curve panel skipped (missing CSV): {analytic_path}")
        ax_curve.set_axis_off()
    except (KeyError, ValueError) as e:
        print(f"[WARN] success-curve panel skipped (error): {e}")
        ax_curve.set_axis_off()

    # Panel (B): convergence of the estimate at floor(n/e)
    try:
        if df_cv is None or df_cv.empty:
            raise FileNotFoundError(conv_path)
        d = df_cv.copy()
        d["trials"] = pd.to_numeric(d[_col(d, "trials")], errors="coerce")
        d = d.dropna(subset=["trials"]).sort_values("trials")
        x = d["trials"].to_numpy(dtype=float)
        y = pd.to_numeric(d[_col(d, "abs_error")], errors="coerce").to_numpy()
        p = float(pd.to_numeric(d[_col(d, "analytic_probability")], errors="coerce").iloc[0])

        ax_conv.loglog(x, np.maximum(y, 1e-6), "-o", color=COLOURS["empirical"], markersize=4.5, label="|estimate - analytic|")
        ax_conv.loglog(
            x,
            np.sqrt(p * (1.0 - p) / x),
            "--",
            color=COLOURS["analytic"],
            label=r"binomial SE $\sqrt{p(1-p)/t}$",
        )
        ax_conv.set_xlabel("trials $t$")
        ax_conv.set_ylabel("absolute error")
        ax_conv.set_title(rf"(B) Monte Carlo convergence at $k={theory}$")
        ax_conv.grid(True, axis="both", alpha=0.18)
        ax_conv.legend(loc="upper right", frameon=False, fontsize=9)
        any_panel = True
    except FileNotFoundError:
        print(f"[WARN] convergence panel skipped (missing CSV): {conv_path}")
        ax_conv.set_axis_off()
    except (KeyError, ValueError) as e:
        print(f"[WARN] convergence panel skipped (error): {e}")
        ax_conv.set_axis_off()

    if not any_panel:
        print("[WARN] No panels could be plotted; skipping figure generation.")
        plt.close(fig)
        return None

    fig.tight_layout()

    # Saving the figure
    out_dir = os.path.join(results_dir, "figures")
    os.makedirs(out_dir, exist_ok=True)
    suffix = "" if mode == "full" else f"_{mode}"
    png_path = os.path.join(out_dir, f"Figure_1_Secretary_n{n}{suffix}.png")
    pdf_path = os.path.join(out_dir, f"Figure_1_Secretary_n{n}{suffix}.pdf")
    fig.savefig(png_path, dpi=300, bbox_inches="tight")
    fig.savefig(pdf_path, bbox_inches="tight")
    plt.close(fig)

    print(f"[FIGURE] Saved Figure 1 to {png_path} and {pdf_path}")
    return png_path
