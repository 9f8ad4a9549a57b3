"""
Visualization utilities for CRTPower.

Plots per-arm power with exact confidence intervals.
"""

from typing import Any, Dict

import numpy as np

__all__ = []


def _create_arm_power_plot(result: Dict[str, Any], target_power: float = 0.8, show: bool = True):
    """Bar chart of per-arm power with Clopper-Pearson error bars.

    Args:
        result: ``find_power`` result dictionary.
        target_power: Drawn as a dashed reference line (proportion).
        show: Call ``plt.show()``; pass ``False`` to keep the figure open.

    Returns:
        The matplotlib ``Figure``.

    Raises:
        ImportError: If ``matplotlib`` is not installed.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError("matplotlib required for plotting: pip install crtpower[plot]") from None

    arm_power = result["arm_power"]
    names = list(arm_power.index)
    power = arm_power["power"].to_numpy(dtype=float)
    lower = power - arm_power["lower.ci"].to_numpy(dtype=float)
    upper = arm_power["upper.ci"].to_numpy(dtype=float) - power

    fig, ax = plt.subplots(figsize=(8, 5))
    colors = plt.get_cmap("Set1")(np.linspace(0, 1, max(len(names), 2)))
    ax.bar(names, power, yerr=np.vstack([lower, upper]), capsize=6, color=colors[: len(names)], alpha=0.8)

    overall = result["power"].iloc[0]
    ax.axhline(y=float(overall["power"]), color="black", linestyle=":", linewidth=1.5, label="Omnibus power")
    ax.axhline(y=target_power, color="red", linestyle="--", linewidth=2, label=f"Target Power ({target_power:.0%})")

    ax.set_title(result["overview"], fontsize=11, fontweight="bold")
    ax.set_xlabel("Treatment arm (vs. Arm.1)", fontsize=12)
    ax.set_ylabel("Power", fontsize=12)
    ax.set_ylim(0, 1.05)
    ax.grid(True, axis="y", alpha=0.3)
    ax.legend(loc="lower right")

    plt.tight_layout()
    if show:
        plt.show()
    return fig
