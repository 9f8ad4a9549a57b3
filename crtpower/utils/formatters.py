"""
Plain-text formatting of power analysis results.

Used by ``find_power(print_results=True)`` and by the examples.
"""

from typing import Any, Dict, List, Optional

import numpy as np

__all__ = []


class _TableFormatter:
    """Fixed-width text tables."""

    @staticmethod
    def _format_value(value: Any, spec: Optional[str] = None) -> str:
        if isinstance(value, (float, np.floating)):
            if spec is not None:
                return format(value, spec)
            if value != 0 and abs(value) < 0.001:
                return f"{value:.6f}"
            return f"{value:.4f}"
        return str(value)

    def _create_table(self, headers: List[str], rows: List[List[str]], col_widths: Optional[List[int]] = None) -> str:
        if col_widths is None:
            col_widths = [max(len(str(h)), *(len(str(r[i])) for r in rows)) if rows else len(str(h)) for i, h in enumerate(headers)]

        def _line(cells):
            return " ".join(str(c).ljust(w) for c, w in zip(cells, col_widths))

        lines = [_line(headers), " ".join("-" * w for w in col_widths)]
        lines.extend(_line(r) for r in rows)
        return "\n".join(lines)


class _ResultFormatter(_TableFormatter):
    """Renders the result dictionary of ``find_power``."""

    def format_power(self, result: Dict[str, Any]) -> str:
        sections = [
            "=" * 70,
            result["overview"],
            "=" * 70,
            f"Method: {result['method']}",
            f"Alpha: {result['alpha']}   Correction: {result['multi_p_method']}",
            f"Converged simulations: {result['n_converged']}/{result['nsim']}",
        ]
        if result["n_failed_fits"]:
            sections.append(f"Fits that raised an error: {result['n_failed_fits']}")
        sections += ["", "Overall power (omnibus test):"]

        power = result["power"].iloc[0]
        sections.append(
            self._create_table(
                ["power", "lower.ci", "upper.ci"],
                [[self._format_value(float(power["power"]), ".3f"),
                  self._format_value(float(power["lower.ci"]), ".3f"),
                  self._format_value(float(power["upper.ci"]), ".3f")]],
            )
        )

        sections += ["", "Per-arm power (vs. Arm.1):"]
        arm_rows = []
        for name, row in result["arm_power"].iterrows():
            arm_rows.append(
                [
                    name,
                    self._format_value(float(row["power"]), ".3f"),
                    self._format_value(float(row["lower.ci"]), ".3f"),
                    self._format_value(float(row["upper.ci"]), ".3f"),
                    self._format_value(float(row["beta"]), ".3f"),
                ]
            )
        sections.append(self._create_table(["arm", "power", "lower.ci", "upper.ci", "beta"], arm_rows))

        sections += ["", "Design:"]
        design_rows = []
        for name, row in result["variance_parms"].iterrows():
            sizes = result["cluster_sizes"][name]
            design_rows.append(
                [
                    name,
                    str(len(sizes)),
                    str(int(np.sum(sizes))),
                    self._format_value(float(row["probs"]), ".3f"),
                    self._format_value(float(row["sigma_b_sq"]), ".3f"),
                ]
            )
        sections.append(self._create_table(["arm", "clusters", "subjects", "prob", "sigma_b_sq"], design_rows))

        if result["warnings"]:
            sections += ["", "Warnings:"] + [f"  - {w}" for w in result["warnings"]]
        sections.append("=" * 70)
        return "\n".join(sections)


def _format_results(result: Dict[str, Any]) -> str:
    """Format a ``find_power`` result dictionary as text."""
    return _ResultFormatter().format_power(result)
