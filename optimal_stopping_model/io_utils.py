from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

import pandas as pd

from . import config

RESULT_SUBDIRS = ("analytic", "monte_carlo", "convergence")


def package_root() -> Path:
    """Directory of the installed optimal_stopping_model package."""
    return Path(__file__).resolve().parent


def results_root() -> Path:
    """`results/` under the package, unless OPTIMAL_STOPPING_RESULTS_DIR points elsewhere."""
    override = os.environ.get(config.RESULTS_DIR_ENV)
    if override:
        return Path(override)
    return package_root() / "results"


def ensure_results_layout() -> None:
    root = results_root()
    for sub in RESULT_SUBDIRS:
        (root / sub).mkdir(parents=True, exist_ok=True)


def get_logger(*, mode: str = "full") -> logging.Logger:
    """
    Shared "optimal_stopping_model" logger, set up on first use.

    Records go to stderr and to diagnostics.log in the results directory
    (diagnostics_<mode>.log for non-full modes).
    """
    ensure_results_layout()
    logger = logging.getLogger("optimal_stopping_model")
    logger.setLevel(logging.INFO)

    # Handlers are attached once per process.
    if getattr(logger, "_configured", False):
        return logger

    suffix = "" if mode == "full" else f"_{mode}"
    log_path = results_root() / f"diagnostics{suffix}.log"
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in (logging.FileHandler(log_path, mode="a", encoding="utf-8"), logging.StreamHandler()):
        handler.setLevel(logging.INFO)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    logger._configured = True  # type: ignore[attr-defined]
    return logger


def atomic_write_csv(df: pd.DataFrame, path: Path) -> None:
    """Write `df` to a sibling temp file, then os.replace it onto `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp.{os.getpid()}.{uuid4().hex}")
    df.to_csv(tmp, index=False)
    os.replace(tmp, path)


def read_csv_or_empty(path: Path, *, expected_columns: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Load a result CSV; a missing file yields an empty frame with `expected_columns`."""
    if not path.exists():
        if expected_columns is None:
            return pd.DataFrame()
        return pd.DataFrame(columns=list(expected_columns))
    df = pd.read_csv(path)
    if expected_columns is not None:
        for c in expected_columns:
            if c not in df.columns:
                raise ValueError(f"Missing required column '{c}' in {path}")
    return df


def _key_mask(df: pd.DataFrame, key: dict) -> pd.Series:
    mask = pd.Series(True, index=df.index)
    for k, v in key.items():
        mask &= df[k] == v
    return mask


def upsert_row(
    df: pd.DataFrame,
    row: dict,
    *,
    key_cols: list[str],
) -> pd.DataFrame:
    """Replace the row matching `row` on `key_cols`, or append it. `df` is left untouched."""
    if df.empty:
        return pd.DataFrame([row])

    mask = _key_mask(df, {k: row[k] for k in key_cols})

    df2 = df.copy()
    if mask.any():
        idx = df2.index[mask][0]
        for k, v in row.items():
            df2.at[idx, k] = v
    else:
        df2 = pd.concat([df2, pd.DataFrame([row])], ignore_index=True)
    return df2


def seed_indices_present(
    seed_df: pd.DataFrame,
    *,
    key: dict,
    seed_index_col: str = "seed_index",
) -> set[int]:
    if seed_df.empty:
        return set()
    mask = _key_mask(seed_df, key)
    if not mask.any():
        return set()
    return set(int(x) for x in seed_df.loc[mask, seed_index_col].tolist())
