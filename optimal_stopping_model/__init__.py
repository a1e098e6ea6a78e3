"""
Optimal Stopping — Secretary Problem Cutoff Model

This package evaluates the "look-then-leap" cutoff rule for the secretary
problem: skip the first k of n randomly ordered items, then take the first
item better than all of them (or the last item if none is). Success rates are
estimated by Monte Carlo and computed in closed form, and swept over every
cutoff to compare the optimum against floor(n/e).
"""

from .analysis import (  # noqa: F401
    analytic_success_probability,
    estimate_success_rate,
    find_optimum,
    sweep,
    sweep_to_frame,
    theoretical_optimal_skip,
)
from .config import (  # noqa: F401
    BASE_SEED,
    N_ITEMS,
    N_ITEMS_QUICK,
    N_SEEDS,
    N_SEEDS_QUICK,
    N_TRIALS,
    N_TRIALS_QUICK,
)
from .model import (  # noqa: F401
    InvalidParameter,
    TrialBatchStats,
    draw_permutation,
    run_trial,
    select_index,
    simulate_batch,
)
