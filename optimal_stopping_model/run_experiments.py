from __future__ import annotations

import argparse
from typing import Optional, Sequence

from . import config
from .experiments import run_analytic_sweep, run_convergence, run_monte_carlo_sweep
from .io_utils import ensure_results_layout, get_logger


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run secretary-problem cutoff experiments.")
    p.add_argument(
        "--mode",
        choices=["full", "quick"],
        default="full",
        help="full: N_ITEMS/N_TRIALS/N_SEEDS; quick: smaller dev run writing _quick outputs",
    )
    p.add_argument(
        "--only",
        choices=["analytic", "monte_carlo", "convergence", "all"],
        default="all",
        help="Run only one experiment (or 'all' for the default full pipeline).",
    )
    p.add_argument("--n", type=int, default=None, help="Override the sequence length.")
    p.add_argument("--trials", type=int, default=None, help="Override trials per seed.")
    p.add_argument(
        "--figure",
        action="store_true",
        help="Render the summary figure from the result CSVs afterwards.",
    )
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    mode = args.mode
    only = args.only

    ensure_results_layout()
    logger = get_logger(mode=mode)

    if mode == "quick":
        n = config.N_ITEMS_QUICK
        n_trials = config.N_TRIALS_QUICK
        n_seeds = config.N_SEEDS_QUICK
        skip_stride = config.SKIP_STRIDE_QUICK
        trial_counts = config.CONVERGENCE_TRIALS_QUICK
    else:
        n = config.N_ITEMS
        n_trials = config.N_TRIALS
        n_seeds = config.N_SEEDS
        skip_stride = config.SKIP_STRIDE
        trial_counts = config.CONVERGENCE_TRIALS
    if args.n is not None:
        n = args.n
    if args.trials is not None:
        n_trials = args.trials

    logger.info(f"RUN START mode={mode} n={n} n_trials={n_trials} n_seeds={n_seeds}")
    if only != "all":
        logger.info(f"RUN CONFIG only={only}")

    warn = logger.warning
    info = logger.info

    try:
        if only in ("all", "analytic"):
            run_analytic_sweep(mode=mode, n=n, logger_info=info)
        if only in ("all", "monte_carlo"):
            run_monte_carlo_sweep(
                mode=mode,
                n=n,
                n_trials=n_trials,
                n_seeds=n_seeds,
                skip_stride=skip_stride,
                logger_warn=warn,
                logger_info=info,
            )
        if only in ("all", "convergence"):
            run_convergence(mode=mode, n=n, trial_counts=trial_counts, logger_info=info)
    except ValueError:
        logger.exception("RUN FAILED")
        raise

    if args.figure:
        from .viz_utils import generate_main_figure

        generate_main_figure(mode=mode, n=n)

    logger.info("RUN END")


if __name__ == "__main__":
    main()
