"""Plots of simulated catastrophe losses.

Figures use a restrained WSJ-style palette so they drop into reports unchanged.
"""

from typing import Optional, Tuple

from matplotlib.axes import Axes
from matplotlib.figure import Figure
import matplotlib.pyplot as plt
from matplotlib.ticker import FuncFormatter
import numpy as np

WSJ_COLORS = {
    "blue": "#0080C7",  # Primary blue
    "red": "#D32F2F",  # Trigger / warning
    "gray": "#666666",
    "light_gray": "#E0E0E0",
}

_ABBREVIATIONS = ((1e9, "B"), (1e6, "M"), (1e3, "K"))


def style_axes(ax: Axes) -> None:
    """Open frame with a light grid, applied to one axes only."""
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    for side in ("left", "bottom"):
        ax.spines[side].set_color(WSJ_COLORS["gray"])
    ax.grid(True, which="major", color=WSJ_COLORS["light_gray"], alpha=0.5)


def format_currency(value: float, decimals: int = 0, abbreviate: bool = False) -> str:
    """Format a loss amount in dollars.

    Args:
        value: Amount to format.
        decimals: Number of decimal places.
        abbreviate: Use K/M/B suffixes instead of thousands separators.

    Examples:
        >>> format_currency(91_000, abbreviate=True)
        '$91K'
        >>> format_currency(-2_500.5, decimals=2)
        '-$2,500.50'
    """
    if abbreviate:
        for scale, suffix in _ABBREVIATIONS:
            if abs(value) >= scale:
                return f"${value / scale:.{decimals}f}{suffix}"
        return f"${value:.{decimals}f}"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.{decimals}f}"


def exceedance_curve(losses: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Empirical exceedance probabilities of aggregate losses.

    Args:
        losses: Aggregate loss per path.

    Returns:
        Tuple of losses sorted descending and the probability that a path
        loss reaches each of them.
    """
    sorted_losses = np.sort(np.asarray(losses, dtype=float))[::-1]
    probabilities = np.arange(1, len(sorted_losses) + 1) / len(sorted_losses)
    return sorted_losses, probabilities


def plot_exceedance_curve(
    losses: np.ndarray,
    trigger: Optional[float] = None,
    ax: Optional[Axes] = None,
    title: str = "Annual Loss Exceedance",
    figsize: Tuple[int, int] = (10, 6),
) -> Figure:
    """Plot the annual loss exceedance curve of a simulation.

    Args:
        losses: Aggregate loss per path.
        trigger: Optional bond trigger, drawn as a vertical line with its
            empirical attachment probability.
        ax: Axes to draw on; a new figure is created when omitted.
        title: Plot title.
        figsize: Figure size (width, height) for a new figure.

    Returns:
        Matplotlib figure containing the plot.

    Raises:
        ValueError: If losses is empty.
    """
    if len(losses) == 0:
        raise ValueError("Losses array cannot be empty")

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.get_figure()
    style_axes(ax)

    sorted_losses, probabilities = exceedance_curve(losses)
    ax.step(
        sorted_losses,
        probabilities,
        where="post",
        color=WSJ_COLORS["blue"],
        linewidth=2,
        label="Simulated",
    )

    if trigger is not None:
        attachment = float(np.mean(np.asarray(losses) >= trigger))
        ax.axvline(
            trigger,
            color=WSJ_COLORS["red"],
            linestyle="--",
            linewidth=1.5,
            label=f"Trigger {format_currency(trigger, abbreviate=True)} (p={attachment:.2%})",
        )

    ax.set_yscale("log")
    ax.set_xlabel("Annual Loss")
    ax.set_ylabel("Exceedance Probability")
    ax.set_title(title)
    ax.xaxis.set_major_formatter(FuncFormatter(lambda x, _: format_currency(x, abbreviate=True)))
    ax.legend(loc="upper right")

    return fig  # type: ignore[return-value]
