"""Aggregation and tail statistics for simulated catastrophe losses.

These helpers drain a :class:`~catrisk.cat_risk.CatSimulation` and turn its
paths into per-period aggregate losses or a flat event table, then summarize
the loss distribution against an optional bond trigger.
"""

from dataclasses import asdict, dataclass
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .cat_risk import CatEvent, CatSimulation

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ["path", "period_start", "period_end", "date", "loss"]


@dataclass
class LossSummary:
    """Summary statistics of aggregate losses per path.

    Attributes:
        n_paths: Number of path losses summarized.
        mean: Mean aggregate loss.
        std: Sample standard deviation of aggregate loss.
        standard_error: Standard error of the mean.
        confidence: Confidence level of the tail metrics.
        var: Value at Risk at the confidence level.
        tvar: Tail Value at Risk, the mean of losses at or above VaR.
        trigger: Bond trigger level, if one was given.
        trigger_probability: Share of paths whose loss reaches the trigger.
    """

    n_paths: int
    mean: float
    std: float
    standard_error: float
    confidence: float
    var: float
    tvar: float
    trigger: Optional[float] = None
    trigger_probability: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the summary to a plain dictionary."""
        return asdict(self)


def simulate_path_losses(simulation: CatSimulation) -> np.ndarray:
    """Run a simulation to exhaustion and total the losses of each path.

    Args:
        simulation: Fresh simulation; it is consumed.

    Returns:
        Array with one aggregate loss per path, empty paths counting zero.
    """
    totals: List[float] = []
    path: List[CatEvent] = []
    while simulation.next_path(path):
        totals.append(sum(event.loss for event in path))
    return np.asarray(totals, dtype=float)


def paths_to_frame(simulation: CatSimulation) -> pd.DataFrame:
    """Run a simulation to exhaustion and tabulate every event.

    Args:
        simulation: Fresh simulation; it is consumed.

    Returns:
        DataFrame with columns ``path``, ``period_start``, ``period_end``,
        ``date`` and ``loss``. Paths without events contribute no rows.
    """
    records = []
    path: List[CatEvent] = []
    path_index = 0
    while simulation.next_path(path):
        for event in path:
            records.append(
                (path_index, simulation.period_start, simulation.period_end, event.date, event.loss)
            )
        path_index += 1
    return pd.DataFrame.from_records(records, columns=FRAME_COLUMNS)


def summarize_losses(
    losses: np.ndarray,
    confidence: float = 0.99,
    trigger: Optional[float] = None,
) -> LossSummary:
    """Summarize a sample of aggregate losses.

    Args:
        losses: Aggregate loss per path.
        confidence: Confidence level for VaR and TVaR, in ``(0, 1)``.
        trigger: Optional trigger level of a catastrophe bond.

    Returns:
        LossSummary of the sample.

    Raises:
        ValueError: If no finite losses remain or confidence is out of range.
    """
    if not 0 < confidence < 1:
        raise ValueError(f"Confidence must be in (0, 1), got {confidence}")

    losses = np.asarray(losses, dtype=float)
    valid_mask = np.isfinite(losses)
    if not np.all(valid_mask):
        logger.warning("Removing %d non-finite values", np.sum(~valid_mask))
        losses = losses[valid_mask]
    if len(losses) == 0:
        raise ValueError("Losses array cannot be empty")

    var_value = float(np.quantile(losses, confidence))
    tail_losses = losses[losses >= var_value]
    n = len(losses)

    return LossSummary(
        n_paths=n,
        mean=float(np.mean(losses)),
        std=float(np.std(losses, ddof=1)) if n > 1 else 0.0,
        standard_error=float(stats.sem(losses)) if n > 1 else float("nan"),
        confidence=confidence,
        var=var_value,
        tvar=float(np.mean(tail_losses)) if len(tail_losses) else var_value,
        trigger=trigger,
        trigger_probability=float(np.mean(losses >= trigger)) if trigger is not None else None,
    )
