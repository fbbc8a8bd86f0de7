from __future__ import annotations

from bulk_reconcile.models.processing_result import BatchSummary

"""SUMMARY line rendering.

Format:
SUMMARY rows={total} processed={n} immediate={a} review={b} reject={c}
duplicate={d} fixed={e} skipped={f} api_calls={g} elapsed_sec={s} outcome={name}
(one line, single spaces)
"""

__all__ = [
    "format_number",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integers without a decimal point, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(summary: BatchSummary) -> str:
    """Render the SUMMARY line for one run.

    Examples:
        >>> render_summary_line(summary)  # doctest: +SKIP
        'SUMMARY rows=10 processed=10 immediate=7 review=2 reject=1 duplicate=0 fixed=0 skipped=0 api_calls=31 elapsed_sec=3.2 outcome=with_rejections'
    """
    s = summary.stats
    return (
        f"SUMMARY rows={s.total} "
        f"processed={s.processed} "
        f"immediate={s.immediate} "
        f"review={s.review} "
        f"reject={s.reject} "
        f"duplicate={s.duplicate} "
        f"fixed={s.fixed} "
        f"skipped={s.skipped} "
        f"api_calls={summary.api_calls} "
        f"elapsed_sec={format_number(summary.elapsed_seconds)} "
        f"outcome={summary.outcome.value}"
    )
