from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pandas as pd

from bulk_reconcile.csvfile.columns import ACCEPTED_HEADERS
from bulk_reconcile.csvfile.export import export_filename, write_accepted_csv, write_error_csv, write_log_csv
from bulk_reconcile.csvfile.tokenizer import parse_with_header, read_csv_text
from bulk_reconcile.models.directory_record import DirectoryRecord
from bulk_reconcile.models.processing_result import OperationLogEntry
from bulk_reconcile.models.validation import Severity


def test_export_filename():
    when = datetime(2025, 3, 1, 9, 30, 5, tzinfo=UTC)
    assert export_filename("Cleaned", "Seoul", when) == "Cleaned_Seoul_20250301-093005.csv"


def test_accepted_csv_has_bom_and_fixed_header(tmp_path: Path):
    rec = DirectoryRecord(id="t_1", name="시청역", address="서울 중구 세종대로 110", lat=37.5663, lng=126.9779,
                          floor=-1, male_stalls="2", female_stalls="3", opening_hours="24시간")
    path = write_accepted_csv([rec], tmp_path / "out" / "Cleaned.csv")
    raw = path.read_bytes()
    assert raw.startswith(b"\xef\xbb\xbf")
    df = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
    assert list(df.columns) == list(ACCEPTED_HEADERS)
    assert df.iloc[0]["화장실명"] == "시청역"
    assert df.iloc[0]["층수"] == "-1"


def test_error_csv_keeps_original_cells_plus_reason(tmp_path: Path):
    header = ["화장실명", "주소", "위도"]
    failures = [(["역", "서울"], "주소 불명 및 좌표 없음"), (["a", "b", "c", "extra"], "boom")]
    path = write_error_csv(header, failures, tmp_path / "Errors.csv")
    df = pd.read_csv(path, encoding="utf-8-sig", dtype=str, keep_default_na=False)
    assert list(df.columns) == ["화장실명", "주소", "위도", "오류사유"]
    assert df.iloc[0].tolist() == ["역", "서울", "", "주소 불명 및 좌표 없음"]
    assert df.iloc[1].tolist() == ["a", "b", "c", "boom"]


def test_log_csv(tmp_path: Path):
    entries = [OperationLogEntry.create("작업 시작"), OperationLogEntry.create("[등록불가] 역", Severity.ERROR, 3)]
    path = write_log_csv(entries, tmp_path / "Log.csv")
    df = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
    assert list(df.columns) == ["시간", "유형", "메시지"]
    assert df["유형"].tolist() == ["info", "error"]


def test_accepted_csv_round_trips_through_tokenizer(tmp_path: Path):
    records = [
        DirectoryRecord(id="t_1", name='시청역 "신관", 1번 출구', address="서울 중구 세종대로 110, 지하", lat=37.5663,
                        lng=126.9779, floor=-1, male_stalls="2", female_stalls="3", opening_hours="09:00~18:00, 주말 휴무"),
        DirectoryRecord(id="t_2", name="탑골공원", address="서울 종로구 종로 99", lat=37.571, lng=126.9882, floor=1),
    ]
    path = write_accepted_csv(records, tmp_path / "Cleaned.csv")
    header, rows = parse_with_header(read_csv_text(path))
    assert header == list(ACCEPTED_HEADERS)
    assert len(rows) == 2
    assert rows[0][:7] == ["공중화장실", '시청역 "신관", 1번 출구', "서울 중구 세종대로 110, 지하", "-1", "2", "3",
                           "09:00~18:00, 주말 휴무"]
    assert [float(rows[0][7]), float(rows[0][8])] == [37.5663, 126.9779]
    assert rows[1][1:3] == ["탑골공원", "서울 종로구 종로 99"]
