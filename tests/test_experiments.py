"""
Integration tests for the resumable experiment runners and the CLI.

All outputs go to a temporary results directory (see conftest.results_dir).
"""

import pandas as pd
import pytest

from optimal_stopping_model import experiments, run_experiments
from optimal_stopping_model.analysis import analytic_success_probability
from optimal_stopping_model.experiments import (
    CONVERGENCE_COLS,
    SEED_COLS,
    SUMMARY_COLS,
    format_optimum_summary,
    run_analytic_sweep,
    run_convergence,
    run_monte_carlo_sweep,
)


class TestFormatOptimumSummary:
    def test_basic(self):
        assert format_optimum_summary(37, 0.37104) == "Optimal skip = 37, success ≈ 37.1%"

    def test_with_theory(self):
        text = format_optimum_summary(37, 0.37104, n=100)
        assert text.endswith("(theory: floor(n/e) = 36)")


class TestAnalyticSweep:
    def test_writes_full_curve(self, results_dir, log_sink):
        path = run_analytic_sweep(mode="quick", n=10, logger_info=log_sink.info)
        assert path.exists()
        assert path.parent == results_dir / "analytic"
        df = pd.read_csv(path)
        assert list(df.columns) == ["run_id", "n", "skip", "probability"]
        assert df["skip"].tolist() == list(range(11))
        assert df.loc[3, "probability"] == pytest.approx(analytic_success_probability(10, 3))
        assert any("Optimal skip = 3" in msg for _, msg in log_sink.records)


class TestMonteCarloSweep:
    def _run(self, log_sink, **overrides):
        kwargs = dict(
            mode="quick",
            n=10,
            n_trials=400,
            n_seeds=2,
            skip_stride=1,
            logger_warn=log_sink.warn,
            logger_info=log_sink.info,
        )
        kwargs.update(overrides)
        return run_monte_carlo_sweep(**kwargs)

    def test_writes_summary_and_seed_rows(self, results_dir, log_sink):
        summary_path = self._run(log_sink)
        _, seed_path = experiments.monte_carlo_paths(mode="quick", n=10)

        summary = pd.read_csv(summary_path)
        seeds = pd.read_csv(seed_path)
        assert list(summary.columns) == SUMMARY_COLS
        assert list(seeds.columns) == SEED_COLS
        assert summary["skip"].tolist() == list(range(11))
        assert (summary["n_seeds"] == 2).all()
        assert len(seeds) == 11 * 2
        assert summary["mean_success_rate"].between(0.0, 1.0).all()
        assert (summary["abs_error"] >= 0).all()

    def test_skip_zero_and_n_have_full_fallback_profile(self, results_dir, log_sink):
        self._run(log_sink)
        _, seed_path = experiments.monte_carlo_paths(mode="quick", n=10)
        seeds = pd.read_csv(seed_path)
        assert (seeds.loc[seeds["skip"] == 0, "fallback_fraction"] == 0.0).all()
        assert (seeds.loc[seeds["skip"] == 10, "fallback_fraction"] == 1.0).all()

    def test_resume_skips_completed_seeds(self, results_dir, log_sink):
        self._run(log_sink)
        first = pd.read_csv(experiments.monte_carlo_paths(mode="quick", n=10)[1])
        log_sink.records.clear()

        self._run(log_sink)
        second = pd.read_csv(experiments.monte_carlo_paths(mode="quick", n=10)[1])
        assert not any("running skip=" in msg for _, msg in log_sink.records)
        pd.testing.assert_frame_equal(first, second)

    def test_resume_adds_missing_seeds(self, results_dir, log_sink):
        self._run(log_sink, n_seeds=1)
        summary_path = self._run(log_sink, n_seeds=3)
        summary = pd.read_csv(summary_path)
        assert (summary["n_seeds"] == 3).all()
        seeds = pd.read_csv(experiments.monte_carlo_paths(mode="quick", n=10)[1])
        assert sorted(seeds.loc[seeds["skip"] == 4, "seed_index"].tolist()) == [0, 1, 2]

    def test_new_trial_count_is_run_not_reused(self, results_dir, log_sink):
        self._run(log_sink, n_trials=100, n_seeds=1)
        log_sink.records.clear()

        self._run(log_sink, n_trials=300, n_seeds=1)
        assert any("running skip=" in msg for _, msg in log_sink.records)
        seeds = pd.read_csv(experiments.monte_carlo_paths(mode="quick", n=10)[1])
        assert sorted(seeds["trials"].unique().tolist()) == [100, 300]
        assert (seeds.groupby("trials").size() == 11).all()

    def test_summary_never_mixes_trial_counts(self, results_dir, log_sink):
        self._run(log_sink, n_trials=100, n_seeds=1)
        summary_path = self._run(log_sink, n_trials=2_000, n_seeds=2)

        summary = pd.read_csv(summary_path)
        seeds = pd.read_csv(experiments.monte_carlo_paths(mode="quick", n=10)[1])
        current = summary[summary["trials_per_seed"] == 2_000].set_index("skip").sort_index()
        assert current.index.tolist() == list(range(11))
        assert (current["n_seeds"] == 2).all()

        rows = seeds[seeds["trials"] == 2_000].groupby("skip")
        pooled_trials = rows["trials"].sum().sort_index()
        pooled_rate = (rows["successes"].sum() / rows["trials"].sum()).sort_index()
        assert (current["trials_per_seed"] * current["n_seeds"]).tolist() == pooled_trials.tolist()
        assert current["mean_success_rate"].tolist() == pytest.approx(pooled_rate.tolist())

        # the earlier run keeps its own summary rows
        earlier = summary[summary["trials_per_seed"] == 100]
        assert len(earlier) == 11 and (earlier["n_seeds"] == 1).all()

    def test_stride_always_includes_last_skip(self, results_dir, log_sink):
        summary = pd.read_csv(self._run(log_sink, skip_stride=3, n_seeds=1))
        assert summary["skip"].tolist() == [0, 3, 6, 9, 10]

    def test_seeds_are_paired_across_skips(self, results_dir, log_sink):
        self._run(log_sink)
        seeds = pd.read_csv(experiments.monte_carlo_paths(mode="quick", n=10)[1])
        assert seeds.groupby("seed_index")["seed"].nunique().eq(1).all()


class TestConvergence:
    def test_writes_rows_per_trial_count(self, results_dir, log_sink):
        path = run_convergence(mode="quick", n=20, trial_counts=[100, 1_000], logger_info=log_sink.info)
        df = pd.read_csv(path)
        assert list(df.columns) == CONVERGENCE_COLS
        assert df["trials"].tolist() == [100, 1_000]
        assert (df["skip"] == 7).all()
        assert (df["rel_error"] >= 0).all()

    def test_resume_adds_only_new_counts(self, results_dir, log_sink):
        run_convergence(mode="quick", n=20, trial_counts=[100], logger_info=log_sink.info)
        log_sink.records.clear()
        path = run_convergence(mode="quick", n=20, trial_counts=[100, 500], logger_info=log_sink.info)
        df = pd.read_csv(path)
        assert sorted(df["trials"].tolist()) == [100, 500]
        assert sum("trials=" in msg and "p_hat" in msg for _, msg in log_sink.records) == 1


class TestCli:
    def test_parse_defaults(self):
        args = run_experiments.parse_args([])
        assert args.mode == "full"
        assert args.only == "all"
        assert args.n is None
        assert not args.figure

    def test_quick_analytic_run(self, results_dir):
        run_experiments.main(["--mode", "quick", "--only", "analytic", "--n", "15"])
        df = pd.read_csv(results_dir / "analytic" / "analytic_sweep_n15_quick.csv")
        assert df["skip"].tolist() == list(range(16))

    def test_rejects_unknown_experiment(self):
        with pytest.raises(SystemExit):
            run_experiments.parse_args(["--only", "sweep_r"])
