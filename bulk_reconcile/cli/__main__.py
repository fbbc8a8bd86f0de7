from __future__ import annotations

import argparse
import os
import signal
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from bulk_reconcile.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config, resolve_region_key
from bulk_reconcile.csvfile.columns import detect_columns, extract_fields, is_vetted_export
from bulk_reconcile.csvfile.tokenizer import CsvFormatError, parse_with_header, read_csv_text
from bulk_reconcile.db.land_check import BoundingBoxLandChecker, LandChecker, PostgresLandChecker
from bulk_reconcile.db.store import DirectoryStore, InMemoryDirectoryStore, PostgresDirectoryStore
from bulk_reconcile.geocoding import GeocodingAdapter, GeocodingUnavailableError, NullProvider, build_provider
from bulk_reconcile.logging.init import log_summary, setup_logging
from bulk_reconcile.models.config_models import ReconcileConfig
from bulk_reconcile.models.processing_result import BatchOutcome, BatchSummary
from bulk_reconcile.services import review
from bulk_reconcile.services.orchestrator import (
    BatchRun,
    ProcessingError,
    RollbackError,
    SaveFailedError,
    process_file,
    rollback_batch,
)
from bulk_reconcile.services.progress import ProgressTracker
from bulk_reconcile.services.summary import render_summary_line

"""CLI entrypoint.

    bulk-reconcile [--config PATH] [--debug] run <csv> [--region KEY] [--encoding ENC]
                   [--fast-path auto|always|never] [--output-dir DIR]
    bulk-reconcile inspect <csv>
    bulk-reconcile rollback <upload_id>
    bulk-reconcile review approve|reject|delete <item_id>
    bulk-reconcile review edit <item_id> [--name] [--address] [--lat] [--lng] [--floor]

Exit codes: 0 all accepted, 1 fatal startup, 2 partial review, 3 with rejections,
4 aborted by user, 5 save failed.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_REVIEW = 2
EXIT_WITH_REJECTIONS = 3
EXIT_ABORTED = 4
EXIT_SAVE_FAILED = 5

_OUTCOME_EXIT = {
    BatchOutcome.ALL_ACCEPTED: EXIT_SUCCESS_ALL,
    BatchOutcome.PARTIAL_REVIEW: EXIT_PARTIAL_REVIEW,
    BatchOutcome.WITH_REJECTIONS: EXIT_WITH_REJECTIONS,
    BatchOutcome.ABORTED: EXIT_ABORTED,
    BatchOutcome.SAVE_FAILED: EXIT_SAVE_FAILED,
}


def exit_code_for(outcome: BatchOutcome) -> int:
    return _OUTCOME_EXIT[outcome]


def _resolve_dsn(cfg: ReconcileConfig) -> str:
    """DSN resolution order.

        1. DATABASE_URL / PGDSN (.env 값이 기존 환경변수를 덮어씀)
        2. config 의 database.dsn
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, 없으면 database 섹션 값
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_connection(cfg: ReconcileConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection + cursor. Store methods COMMIT per write."""
    conn = psycopg2.connect(_resolve_dsn(cfg))
    conn.autocommit = False
    cur = conn.cursor()
    try:
        yield cur
    finally:
        try:
            cur.close()
        finally:
            conn.close()


@contextmanager
def _backend(cfg: ReconcileConfig, logger: Any) -> Iterator[tuple[DirectoryStore, LandChecker]]:
    """(store, land checker) pair: PostgreSQL, or in-memory with DISABLE_DB_CONNECT=1."""
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryDirectoryStore(), BoundingBoxLandChecker()
        return
    with _db_connection(cfg) as cur:
        logger.debug("mode=live")
        yield PostgresDirectoryStore(cur), PostgresLandChecker(cur, fallback=BoundingBoxLandChecker())


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (override=True: .env 값이 최우선)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="bulk-reconcile", description="Bulk facility CSV reconciliation")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Process one CSV file")
    run.add_argument("csv", type=Path)
    run.add_argument("--region", help="Region key, name or keyword")
    run.add_argument("--encoding", help="auto, utf-8, cp949, euc-kr ...")
    run.add_argument("--fast-path", choices=("auto", "always", "never"), dest="fast_path")
    run.add_argument("--output-dir", type=Path, dest="output_dir")

    inspect = sub.add_parser("inspect", help="Print column mapping and first rows then exit")
    inspect.add_argument("csv", type=Path)
    inspect.add_argument("--encoding")
    inspect.add_argument("--rows", type=int, default=3)

    rollback = sub.add_parser("rollback", help="Cancel a completed upload")
    rollback.add_argument("upload_id")

    rv = sub.add_parser("review", help="Review actions on staged items")
    rv_sub = rv.add_subparsers(dest="action")
    for action in ("approve", "reject", "delete"):
        a = rv_sub.add_parser(action)
        a.add_argument("item_id")
    edit = rv_sub.add_parser("edit")
    edit.add_argument("item_id")
    edit.add_argument("--name")
    edit.add_argument("--address")
    edit.add_argument("--lat", type=float)
    edit.add_argument("--lng", type=float)
    edit.add_argument("--floor", type=int)
    return p


def _print_summary(summary: BatchSummary, logger: Any) -> None:
    for kind, path in summary.exports.items():
        logger.info(f"export {kind}: {path}")
    if summary.api_calls or summary.cache_hits:
        logger.info(f"api_calls={summary.api_calls} cache_hits={summary.cache_hits}")
    summary_line = render_summary_line(summary)
    log_summary(summary_line[8:])  # "SUMMARY " 접두어는 log_summary 가 붙임


@contextmanager
def _interrupt_stops(holder: dict[str, BatchRun]) -> Iterator[None]:
    """First Ctrl+C stops the run at the next row boundary, second one is a hard interrupt."""

    def handler(signum: int, frame: Any) -> None:
        run = holder.get("run")
        if run is None or run.stopped:
            raise KeyboardInterrupt
        run.stop()

    try:
        previous = signal.signal(signal.SIGINT, handler)
    except ValueError:  # 메인 스레드가 아님
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _cmd_run(args: argparse.Namespace, cfg: ReconcileConfig, logger: Any) -> int:
    path: Path = args.csv
    if not path.exists():
        logger.error(f"file not found: {path}")
        return EXIT_FATAL
    try:
        region_key = resolve_region_key(cfg.regions, args.region) if args.region else cfg.region
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    if args.output_dir:
        cfg = replace(cfg, output_directory=str(args.output_dir))

    try:
        provider = build_provider(cfg.geocoding)
    except GeocodingUnavailableError as e:
        logger.warning(f"geocoding unavailable -> degraded mode: {e}")
        provider = NullProvider()
    adapter = GeocodingAdapter(provider)

    holder: dict[str, BatchRun] = {}
    try:
        with _backend(cfg, logger) as (store, land_checker), _interrupt_stops(holder):
            summary = process_file(
                path, cfg, adapter, land_checker, store,
                region_key=region_key,
                encoding=args.encoding,
                fast_path=args.fast_path,
                progress_factory=lambda n: ProgressTracker(n, description=path.name),
                on_run_created=lambda run: holder.__setitem__("run", run),
            )
    except CsvFormatError as e:
        logger.error(f"csv: {e}")
        return EXIT_FATAL
    except SaveFailedError as e:
        logger.error(f"save: {e} committed_records={len(e.batch.uploaded_record_ids)} upload={e.batch.id}")
        if e.summary is not None:
            _print_summary(e.summary, logger)
        return EXIT_SAVE_FAILED
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    finally:
        provider.close()

    if adapter.degraded:
        logger.warning("geocoding ran in degraded mode (provider unavailable)")
    logger.info(f"upload_id={summary.upload_id} fast_path={'yes' if summary.fast_path else 'no'}")
    _print_summary(summary, logger)
    return exit_code_for(summary.outcome)


def _cmd_inspect(args: argparse.Namespace, cfg: ReconcileConfig) -> int:
    try:
        text = read_csv_text(args.csv, args.encoding or cfg.encoding)
    except CsvFormatError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    header, rows = parse_with_header(text)
    cmap = detect_columns(header)
    print(f"FILE: {args.csv.name} rows={len(rows)}")
    print(f"  header={header}")
    print(f"  {cmap.describe()}")
    print(f"  fast_path={'yes' if is_vetted_export(header) else 'no'}")
    for i, row in enumerate(rows[: args.rows]):
        f = extract_fields(row, cmap)
        print(f"  [{i + 1}] name={f.name!r} address={f.address!r} lat={f.lat} lng={f.lng}")
    return EXIT_SUCCESS_ALL


def _cmd_rollback(args: argparse.Namespace, cfg: ReconcileConfig, logger: Any) -> int:
    try:
        with _backend(cfg, logger) as (store, _):
            deleted = rollback_batch(
                store, args.upload_id, chunk_size=cfg.chunk_size,
                on_progress=lambda done, total: logger.info(f"rollback {done}/{total}"),
            )
    except RollbackError as e:
        logger.error(f"rollback: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    logger.info(f"upload {args.upload_id} voided (deleted={deleted})")
    return EXIT_SUCCESS_ALL


def _cmd_review(args: argparse.Namespace, cfg: ReconcileConfig, logger: Any) -> int:
    actions: dict[str, Callable[[DirectoryStore], Any]] = {
        "approve": lambda s: review.approve(s, args.item_id),
        "reject": lambda s: review.reject(s, args.item_id),
        "delete": lambda s: review.delete(s, args.item_id),
        "edit": lambda s: review.edit(
            s, args.item_id,
            name=args.name, address=args.address, lat=args.lat, lng=args.lng, floor=args.floor,
        ),
    }
    if args.action not in actions:
        logger.error("review: action required (approve|reject|delete|edit)")
        return EXIT_FATAL
    try:
        with _backend(cfg, logger) as (store, _):
            actions[args.action](store)
    except review.ReviewError as e:
        logger.error(f"review: {e}")
        return EXIT_FATAL
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
    logger.info(f"review {args.action} {args.item_id}: ok")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None 일 때만 sys.argv 를 읽는다 (테스트에서 main([]) 호출 시 pytest 인자 혼입 방지)
    if argv is None:
        argv = sys.argv[1:]
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse 의 종료 코드 2 는 partial review 와 겹치므로 변환
        return EXIT_SUCCESS_ALL if not e.code else EXIT_FATAL

    logger = setup_logging(debug=args.debug)
    if args.command is None:
        parser.print_help()
        return EXIT_FATAL

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    logger.debug("debug mode enabled")

    if args.command == "inspect":
        return _cmd_inspect(args, cfg)
    if args.command == "rollback":
        return _cmd_rollback(args, cfg, logger)
    if args.command == "review":
        return _cmd_review(args, cfg, logger)
    return _cmd_run(args, cfg, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
