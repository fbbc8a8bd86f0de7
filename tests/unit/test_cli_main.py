from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from bulk_reconcile.cli.__main__ import _load_env_file, _resolve_dsn, exit_code_for
from bulk_reconcile.cli.__main__ import main as cli_main
from bulk_reconcile.db.store import PostgresDirectoryStore
from bulk_reconcile.logging.init import reset_logging
from bulk_reconcile.models.config_models import DatabaseConfig, ReconcileConfig
from bulk_reconcile.models.processing_result import BatchOutcome, BatchSummary, RunStats

PG_ENV = ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (*PG_ENV, "DISABLE_DB_CONNECT", "KAKAO_REST_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    reset_logging()
    yield
    reset_logging()


def _summary(outcome: BatchOutcome = BatchOutcome.ALL_ACCEPTED) -> BatchSummary:
    now = datetime.now(UTC)
    return BatchSummary(
        upload_id="upload_1700000000000", file_name="a.csv", region_key="Seoul",
        stats=RunStats(total=1, processed=1, immediate=1), outcome=outcome, fast_path=False,
        start_time=now, end_time=now, elapsed_seconds=0.2,
    )


def test_exit_code_mapping():
    assert [exit_code_for(o) for o in BatchOutcome] == [0, 2, 3, 4, 5]


def test_resolve_dsn_precedence(monkeypatch):
    cfg = ReconcileConfig(region="Seoul", regions={}, database=DatabaseConfig(host="db", port=6543, user="u", database="d"))
    assert _resolve_dsn(cfg) == "host=db port=6543 user=u dbname=d"

    monkeypatch.setenv("PGHOST", "envhost")
    monkeypatch.setenv("PGPASSWORD", "pw")
    assert _resolve_dsn(cfg) == "host=envhost port=6543 user=u dbname=d password=pw"

    cfg_dsn = ReconcileConfig(region="Seoul", regions={}, database=DatabaseConfig(dsn="postgresql://cfg/db"))
    assert _resolve_dsn(cfg_dsn) == "postgresql://cfg/db"
    monkeypatch.setenv("DATABASE_URL", "postgresql://env/db")
    assert _resolve_dsn(cfg_dsn) == "postgresql://env/db"


def test_env_file_overrides_existing_environment(tmp_path: Path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("PGHOST=from-dotenv\n", encoding="utf-8")
    monkeypatch.setenv("PGHOST", "from-shell")
    _load_env_file(env_file)
    assert os.environ["PGHOST"] == "from-dotenv"
    _load_env_file(tmp_path / "missing.env")


def test_debug_mode_mock_backend(write_config: Path, write_csv, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    path = write_csv("a.csv", "화장실명,WGS84위도,WGS84경도\n시청역,37.5663,126.9779\n")
    code = cli_main(["--debug", "run", str(path)])
    out = capsys.readouterr().out
    assert code == 0
    assert "DEBUG debug mode enabled" in out
    assert "mock mode" in out


def test_live_mode_uses_postgres_store(write_config: Path, write_csv, capsys):
    path = write_csv("a.csv", "화장실명,WGS84위도,WGS84경도\n시청역,37.5663,126.9779\n")
    cursor = MagicMock()
    seen = {}

    @contextmanager
    def fake_connection(cfg):
        yield cursor

    def fake_process_file(path, cfg, adapter, land_checker, store, **kwargs):
        seen["store"] = store
        return _summary(BatchOutcome.PARTIAL_REVIEW)

    with patch("bulk_reconcile.cli.__main__._db_connection", fake_connection), \
         patch("bulk_reconcile.cli.__main__.process_file", fake_process_file):
        code = cli_main(["--debug", "run", str(path)])

    out = capsys.readouterr().out
    assert code == 2
    assert "mode=live" in out
    assert isinstance(seen["store"], PostgresDirectoryStore)
    assert "SUMMARY rows=1 processed=1 immediate=1" in out


def test_database_connect_failure_is_fatal(write_config: Path, write_csv, capsys):
    path = write_csv("a.csv", "화장실명,WGS84위도,WGS84경도\n시청역,37.5663,126.9779\n")
    with patch("bulk_reconcile.cli.__main__.psycopg2.connect", side_effect=psycopg2.OperationalError("refused")):
        code = cli_main(["run", str(path)])
    assert code == 1
    assert "ERROR database: refused" in capsys.readouterr().out


def test_missing_kakao_key_runs_degraded(temp_workdir: Path, write_csv, monkeypatch, capsys):
    (temp_workdir / "config" / "reconcile.yml").write_text(
        "region: Seoul\nrate_limit_ms: 0\ngeocoding:\n  provider: kakao\n", encoding="utf-8"
    )
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    path = write_csv("a.csv", "화장실명,WGS84위도,WGS84경도\n시청역,37.5663,126.9779\n")
    code = cli_main(["run", str(path)])
    out = capsys.readouterr().out
    assert code == 0
    assert "WARN geocoding unavailable -> degraded mode" in out


def test_region_option_accepts_keyword(write_config: Path, write_csv, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    path = write_csv("a.csv", "화장실명,WGS84위도,WGS84경도\n해운대,35.1587,129.1604\n")
    code = cli_main(["run", str(path), "--region", "부산"])
    out = capsys.readouterr().out
    assert code == 0
    assert "immediate=1" in out
