from __future__ import annotations

import re
from datetime import UTC, datetime

from bulk_reconcile.models.processing_result import BatchOutcome, BatchSummary, RunStats
from bulk_reconcile.services.summary import render_summary_line

"""SUMMARY line format contract."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+rows=([0-9]+)\s+processed=([0-9]+)\s+immediate=([0-9]+)\s+review=([0-9]+)\s+"
    r"reject=([0-9]+)\s+duplicate=([0-9]+)\s+fixed=([0-9]+)\s+skipped=([0-9]+)\s+"
    r"api_calls=([0-9]+)\s+elapsed_sec=([0-9]+\.?[0-9]*)\s+"
    r"outcome=(all_accepted|partial_review|with_rejections|aborted|save_failed)$"
)


def test_summary_pattern_example_line():
    line = (
        "SUMMARY rows=120 processed=120 immediate=97 review=11 reject=4 duplicate=6 fixed=3 "
        "skipped=2 api_calls=231 elapsed_sec=41.27 outcome=with_rejections"
    )
    assert SUMMARY_PATTERN.match(line), "SUMMARY line should match contract regex"


def test_rendered_line_matches_contract_for_every_outcome():
    now = datetime.now(UTC)
    for outcome in BatchOutcome:
        summary = BatchSummary(
            upload_id="upload_1", file_name="a.csv", region_key="Seoul",
            stats=RunStats(total=3, processed=3, immediate=3), outcome=outcome, fast_path=False,
            start_time=now, end_time=now, elapsed_seconds=0.000125, api_calls=0,
        )
        line = render_summary_line(summary)
        assert SUMMARY_PATTERN.match(line), line
        assert "e-" not in line
