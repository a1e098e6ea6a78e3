"""
Configuration for the optimal-stopping (secretary problem) experiments.

Only numpy/pandas/tqdm/matplotlib are assumed available in the environment.
"""

# Problem size and trial counts
N_ITEMS = 100
N_TRIALS = 100_000
N_SEEDS = 5

# Quick mode (dev / smoke test)
N_ITEMS_QUICK = 20
N_TRIALS_QUICK = 2_000
N_SEEDS_QUICK = 1

# Monte Carlo sweeps visit every SKIP_STRIDE-th cutoff (analytic sweeps visit all)
SKIP_STRIDE = 1
SKIP_STRIDE_QUICK = 2

# Convergence study: trial counts evaluated at the theoretical optimum
CONVERGENCE_TRIALS = [100, 300, 1_000, 3_000, 10_000, 30_000, 100_000, 300_000]
CONVERGENCE_TRIALS_QUICK = [100, 300, 1_000, 3_000]

# Upper bound on trials * n cells held in memory per vectorised batch
MAX_BATCH_CELLS = 2_000_000

# Randomness
BASE_SEED = 12345

# Results location override
RESULTS_DIR_ENV = "OPTIMAL_STOPPING_RESULTS_DIR"
