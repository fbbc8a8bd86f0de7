from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FakeGeocodingProvider, road

from bulk_reconcile.cli.__main__ import main as cli_main
from bulk_reconcile.csvfile.tokenizer import parse_with_header, read_csv_text
from bulk_reconcile.geocoding.adapter import GeocodingAdapter
from bulk_reconcile.logging.init import reset_logging
from bulk_reconcile.models.processing_result import BatchOutcome
from bulk_reconcile.models.staging_item import StagingStatus
from bulk_reconcile.services import review
from bulk_reconcile.services.orchestrator import process_file, rollback_batch

"""End-to-end: CSV file -> classification -> store -> review -> rollback."""

HEADER = "구분,화장실명,소재지도로명주소,소재지지번주소,남성용-대변기수,여성용-대변기수,개방시간상세,WGS84위도,WGS84경도"
M_PER_DEG = 111_194.9

ROWS = [
    # 즉시 등록 (원본 좌표 = 주소 좌표)
    '공중화장실,"시청역 화장실(B1)",서울 중구 세종대로 110,,2,3,24시간,37.5663,126.9779',
    # 검수 필요 (100m 차이)
    "개방화장실,을지로역 2층,서울 중구 을지로 42,,1,1,09:00~18:00,37.5660,126.9910",
    # 등록 불가 (주소/좌표 없음)
    "공중화장실,무명,,,,,,,",
    # 중복
    '공중화장실,"시청역 화장실(B1)",서울 중구 세종대로 110,,2,3,24시간,37.5663,126.9779',
    # 이름 없음
    ",,서울 중구 어딘가,,,,,,",
]


@pytest.fixture()
def public_csv(write_csv) -> Path:
    return write_csv("toilets_seoul.csv", "\n".join([HEADER, *ROWS]) + "\n", encoding="cp949")


@pytest.fixture()
def provider() -> FakeGeocodingProvider:
    return FakeGeocodingProvider(addresses={
        "서울 중구 세종대로 110 시청역": road(37.5663, 126.9779, "서울 중구 세종대로 110", building="서울시청"),
        "서울 중구 을지로 42 을지로역": road(37.5660 + 100 / M_PER_DEG, 126.9910, "서울 중구 을지로 42"),
    })


def test_pipeline_review_and_rollback(public_csv, provider, reconcile_config, store, land_checker, error_log):
    summary = process_file(
        public_csv, reconcile_config, GeocodingAdapter(provider), land_checker, store, error_log=error_log,
    )
    s = summary.stats
    assert (s.total, s.immediate, s.review, s.reject, s.duplicate, s.skipped) == (5, 1, 1, 1, 1, 1)
    assert summary.outcome is BatchOutcome.WITH_REJECTIONS

    accepted = store.records[f"t_{summary.upload_id}_0"]
    assert accepted.name == "시청역 화장실"
    assert accepted.floor == -1

    staged = store.list_staging_items(upload_id=summary.upload_id, status=StagingStatus.REVIEW_NEEDED)
    assert [i.name for i in staged] == ["을지로역"]
    assert staged[0].floor == 2

    # 검수: 주소 좌표로 보정 후 승인
    review.edit(store, staged[0].id, lat=37.5669, lng=126.9910)
    approved = review.approve(store, staged[0].id)
    assert store.records[approved.id].lat == 37.5669

    # 취소는 배치가 기록한 id 만 지운다 (검수 승인 건은 남음)
    assert rollback_batch(store, summary.upload_id) == 1
    assert list(store.records) == [approved.id]
    assert store.get_batch(summary.upload_id).voided is True

    assert review.cleanup_staging(store, summary.upload_id) == 2


def test_accepted_export_feeds_fast_path(public_csv, provider, reconcile_config, store, land_checker, error_log):
    first = process_file(public_csv, reconcile_config, GeocodingAdapter(provider), land_checker, store, error_log=error_log)
    cleaned = first.exports["accepted"]
    header, rows = parse_with_header(read_csv_text(cleaned))
    assert header[:3] == ["구분", "화장실명", "주소"]
    assert len(rows) == 1

    calls_before = len(provider.calls)
    second = process_file(cleaned, reconcile_config, GeocodingAdapter(provider), land_checker, store, error_log=error_log)
    assert second.fast_path is True
    assert second.stats.immediate == 1
    assert len(provider.calls) == calls_before
    record = store.records[f"t_{second.upload_id}_0"]
    assert (record.lat, record.lng, record.floor) == (37.5663, 126.9779, -1)


@pytest.fixture()
def cli_env(monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    monkeypatch.delenv("KAKAO_REST_API_KEY", raising=False)
    reset_logging()
    yield
    reset_logging()


def test_cli_run_mock_mode(cli_env, write_config, public_csv, capsys):
    code = cli_main(["run", str(public_csv), "--output-dir", "exports"])
    out = capsys.readouterr().out
    # provider none: 원본 좌표가 있는 행은 모두 즉시 등록
    assert code == 3
    assert "SUMMARY rows=5 processed=5 immediate=2 review=0 reject=1 duplicate=1" in out
    assert "upload_id=upload_" in out
    assert sorted(p.name.split("_")[0] for p in Path("exports").glob("*.csv")) == ["Cleaned", "Errors", "Log"]


def test_cli_inspect(cli_env, write_config, public_csv, capsys):
    assert cli_main(["inspect", str(public_csv), "--rows", "2"]) == 0
    out = capsys.readouterr().out
    assert "FILE: toilets_seoul.csv rows=5" in out
    assert "fast_path=no" in out
    assert "[2] name='을지로역 2층'" in out


def test_cli_rollback_unknown_upload(cli_env, write_config, capsys):
    assert cli_main(["rollback", "upload_0"]) == 1
    assert "ERROR rollback: upload not found" in capsys.readouterr().out


def test_cli_review_missing_item(cli_env, write_config, capsys):
    assert cli_main(["review", "approve", "s_upload_0_1"]) == 1
    assert "ERROR review: staging item not found" in capsys.readouterr().out
    assert cli_main(["review"]) == 1
