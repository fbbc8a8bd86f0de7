from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from ..csvfile.columns import ColumnMap, detect_columns, extract_fields, is_vetted_export
from ..csvfile.export import export_filename, write_accepted_csv, write_error_csv, write_log_csv
from ..csvfile.tokenizer import parse_with_header, read_csv_text
from ..db.batch_insert import BatchInsertError
from ..db.land_check import LandChecker
from ..db.store import DirectoryStore
from ..geocoding.adapter import GeocodingAdapter, clean_address
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import LAND_CHECK_BOUND, ReconcileConfig
from ..models.directory_record import DirectoryRecord
from ..models.geocode import GeocodeResult
from ..models.processing_result import (
    BatchOutcome,
    BatchStatsAccumulator,
    BatchSummary,
    OperationLogEntry,
    RowOutcome,
    RunStats,
    UploadBatch,
)
from ..models.row_data import RawRow, RowFields
from ..models.staging_item import StagingItem
from ..models.validation import Action, LogEntry, Severity, ValidationResult
from ..rules.classifier import classify
from ..rules.normalizer import DEFAULT_FLOOR, clean_name_for_search, extract_floor, parse_row
from .progress import ProgressSink

"""Batch orchestration service.

One BatchRun per uploaded file. Per row, in file order:

1. skip rows without a name
2. duplicate key `cleaned name|normalized address`; repeats are counted and skipped
   before any geocoding call
3. raw coordinates outside the selected region are discarded
4. land check for raw coordinates inside the national box; geocode the road
   address, then the lot address (both region-prefixed); without a hit or a raw
   coordinate, keyword search on the region name plus the cleaned facility name
5. classify
6. region re-validation: a final coordinate outside the region gets one
   region-prefixed re-geocode; the decided action is kept, the row is flagged fixed
7. route: immediate -> accepted records, review/reject -> staging items
8. counters + progress sink

A row that raises is logged, counted as reject and the run continues. Persistence
runs after the last row in fixed-size chunks; a failed write raises SaveFailedError
carrying the batch metadata of what actually committed.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BatchRun",
    "ProcessingError",
    "RollbackError",
    "SaveFailedError",
    "new_upload_id",
    "process_file",
    "rollback_batch",
]

ROW_ERROR_TYPE = "ROW_PROCESSING_ERROR"
SAVE_ERROR_TYPE = "SAVE_ERROR"

# 진행 표시에 쓰는 action -> RowOutcome
_ACTION_OUTCOMES = {
    Action.IMMEDIATE: RowOutcome.SUCCESS,
    Action.REVIEW: RowOutcome.REVIEW,
    Action.REJECT: RowOutcome.REJECT,
}


class ProcessingError(Exception):
    """Base exception for fatal processing errors."""
    pass


class SaveFailedError(ProcessingError):
    """Persisting the outputs of a run failed.

    `batch` lists only the accepted record ids whose chunk committed.
    """

    def __init__(self, message: str, batch: UploadBatch, summary: BatchSummary | None = None) -> None:
        super().__init__(message)
        self.batch = batch
        self.summary = summary


class RollbackError(ProcessingError):
    pass


def new_upload_id(now: datetime | None = None) -> str:
    """`upload_<epoch milliseconds>`."""
    moment = now or datetime.now(UTC)
    return f"upload_{int(moment.timestamp() * 1000)}"


def _chunks(items: Sequence, size: int) -> list[Sequence]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def _compose_note(fields: RowFields) -> str:
    note = ""
    if fields.male_stalls:
        note += f"남성변기: {fields.male_stalls} "
    if fields.female_stalls:
        note += f"여성변기: {fields.female_stalls} "
    if fields.opening_hours:
        note += f"\n개방시간: {fields.opening_hours}"
    if fields.memo:
        note += f"\n{fields.memo}"
    return note.strip()


class BatchRun:
    """All per-run state: duplicate map, counters, outputs, operation log, control flags.

    The geocoding caches live in the injected adapter, which is expected to be
    created for this run only.
    """

    def __init__(
        self,
        config: ReconcileConfig,
        adapter: GeocodingAdapter,
        land_checker: LandChecker,
        store: DirectoryStore,
        *,
        region_key: str | None = None,
        progress: ProgressSink | None = None,
        error_log: ErrorLogBuffer | None = None,
        sleep: Callable[[float], None] = time.sleep,
        upload_id: str | None = None,
    ) -> None:
        self.config = config
        self.region_key = region_key or config.region
        self.region = config.region_bound(self.region_key)
        self.adapter = adapter
        self.land_checker = land_checker
        self.store = store
        self.progress = progress or ProgressSink()
        self.error_log = error_log or ErrorLogBuffer()
        self._sleep = sleep
        self.upload_id = upload_id or new_upload_id()

        self.stats = RunStats()
        self.logs: list[OperationLogEntry] = []
        self.accepted: list[DirectoryRecord] = []
        self.staged: list[StagingItem] = []
        self.failures: list[tuple[RawRow, str]] = []
        self.results: dict[int, RowOutcome] = {}
        self._seen: dict[str, tuple[int, str, str]] = {}  # key -> (row index, raw name, address)
        self._file_name = ""

        self._running = threading.Event()
        self._running.set()
        self._stopped = threading.Event()

    # --- control (다른 스레드/진행 sink 에서 호출 가능) -------------------------

    def pause(self) -> None:
        if self._running.is_set():
            self._running.clear()
            self._log("작업 일시정지됨", Severity.WARNING)

    def resume(self) -> None:
        if not self._running.is_set():
            self._log("작업 재개됨")
            self._running.set()

    def stop(self) -> None:
        self._stopped.set()
        self._running.set()  # 일시정지 중이면 깨워서 종료

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def _may_continue(self) -> bool:
        """Row boundary: block while paused; False once stopped."""
        self._running.wait()
        return not self._stopped.is_set()

    # --- logging -------------------------------------------------------------

    def _log(self, message: str, severity: Severity = Severity.INFO, row_index: int | None = None) -> None:
        self.logs.append(OperationLogEntry.create(message, severity, row_index))
        if severity is Severity.ERROR:
            logger.error(message)
        elif severity is Severity.WARNING:
            logger.debug("WARN %s", message)
        else:
            logger.debug(message)

    def log_entries(self, severity: Severity | None = None, row_index: int | None = None) -> list[OperationLogEntry]:
        """Operation log filtered by severity and/or row."""
        return [
            e for e in self.logs
            if (severity is None or e.severity is severity)
            and (row_index is None or e.row_index == row_index)
        ]

    def _throttle(self, calls_before: int) -> None:
        if self.adapter.api_calls > calls_before and self.config.rate_limit_ms > 0:
            self._sleep(self.config.rate_limit_ms / 1000)

    # --- entry points ----------------------------------------------------------

    def run(
        self,
        rows: Sequence[RawRow],
        column_map: ColumnMap,
        file_name: str,
        header: Sequence[str] | None = None,
    ) -> BatchSummary:
        """Full pipeline over every row (geocoding + classification)."""
        return self._run(rows, column_map, file_name, header, fast_path=False)

    def run_fast_path(
        self,
        rows: Sequence[RawRow],
        column_map: ColumnMap,
        file_name: str,
        header: Sequence[str] | None = None,
    ) -> BatchSummary:
        """Already-vetted export: rows with coordinates are accepted as they are."""
        return self._run(rows, column_map, file_name, header, fast_path=True)

    def _run(
        self,
        rows: Sequence[RawRow],
        column_map: ColumnMap,
        file_name: str,
        header: Sequence[str] | None,
        fast_path: bool,
    ) -> BatchSummary:
        start_time = datetime.now(UTC)
        self._file_name = file_name
        self.stats.total = len(rows)

        self._log(f"작업 시작: {len(rows)} 건 / 지역: {self.region.name} / 파일: {file_name}")
        self._log(column_map.describe())
        if fast_path:
            self._log("지오코딩이 완료된 파일(Fast-Path): 좌표를 그대로 등록합니다.", Severity.SUCCESS)

        process = self._fast_path_row if fast_path else self._process_row
        aborted = False
        for i, row in enumerate(rows):
            if not self._may_continue():
                aborted = True
                self._log(f"사용자 중단: {i}/{len(rows)} 건 처리 후 중지", Severity.WARNING)
                break
            outcome = self._guarded(process, i, row, column_map)
            self.results[i] = outcome
            self.stats.processed += 1
            self.progress.on_row_processed(i, outcome)

        if self.adapter.provider.remote:
            self._log(f"API 호출 통계: 지오코딩 {self.adapter.api_calls} 회 (캐시 재사용 {self.adapter.cache_hits} 회)")
        self._log(
            f"작업 완료! 즉시 등록: {self.stats.immediate}, 검수 필요: {self.stats.review}, "
            f"등록 불가: {self.stats.reject}, 중복 제거: {self.stats.duplicate}"
        )

        exports = self._write_exports(header) if header is not None else {}
        return self._finish(start_time, aborted, fast_path, exports)

    def _guarded(
        self, process: Callable[[int, RawRow, ColumnMap], RowOutcome], i: int, row: RawRow, column_map: ColumnMap
    ) -> RowOutcome:
        try:
            return process(i, row, column_map)
        except Exception as e:  # 행 단위 예외는 reject 로 집계하고 계속 진행
            message = f"{type(e).__name__}: {e}"
            logger.debug("row %d failed", i + 1, exc_info=True)
            self._log(f"[{i + 1}/{self.stats.total}] 처리 실패 - {message}", Severity.ERROR, i)
            self.stats.reject += 1
            self.stats.errors += 1
            self.failures.append((list(row), message))
            self.error_log.record(self._file_name, i + 1, ROW_ERROR_TYPE, message)
            return RowOutcome.ERROR

    # --- per-row pipeline ------------------------------------------------------

    def _check_duplicate(self, i: int, fields: RowFields, key: str, address: str, prefix: str) -> bool:
        original = self._seen.get(key)
        if original is None:
            self._seen[key] = (i, fields.name, address)
            return False
        idx, name, orig_address = original
        self._log(f"{prefix}: [중복] 중복 데이터로 감지되어 건너뜁니다.", Severity.WARNING, i)
        self._log(f"▶ 현재건: {fields.name} | {address}", Severity.WARNING, i)
        self._log(f"▶ 원본건: #{idx + 1} {name} | {orig_address}", Severity.WARNING, i)
        self.stats.duplicate += 1
        return True

    def _process_row(self, i: int, row: RawRow, column_map: ColumnMap) -> RowOutcome:
        fields = extract_fields(row, column_map)
        if not fields.name:
            self.stats.skipped += 1
            return RowOutcome.SKIPPED
        prefix = f"[{i + 1}/{self.stats.total}] {fields.name}"

        parsed = parse_row(fields.name, fields.address)
        cleaned = clean_name_for_search(parsed.name)
        if self._check_duplicate(i, fields, f"{cleaned}|{parsed.address}", parsed.address, prefix):
            return RowOutcome.DUPLICATE

        raw_lat, raw_lng = fields.lat, fields.lng
        if fields.has_coordinates and not self.region.contains(raw_lat, raw_lng):
            self._log(f"{prefix}: 입력 좌표가 지역({self.region.name}) 범위를 벗어남 -> 무시", Severity.WARNING, i)
            raw_lat = raw_lng = 0.0
        has_raw = raw_lat != 0 and raw_lng != 0

        is_on_land = False
        if has_raw and LAND_CHECK_BOUND.contains(raw_lat, raw_lng):
            is_on_land = self.land_checker.is_on_land(raw_lat, raw_lng)

        geocode = self._geocode_row(i, prefix, fields, cleaned, has_raw)

        result = classify(
            parsed, raw_lat, raw_lng, geocode, is_on_land,
            self.config.thresholds, self.config.wide_area_keywords,
        )

        if result.action is Action.IMMEDIATE and (geocode is None or not geocode.is_precise) and not fields.address:
            result = self._fill_address(i, prefix, result, cleaned)

        result, fixed = self._revalidate_region(i, prefix, result, parsed.address, cleaned)
        return self._route(i, prefix, row, fields, result, fixed)

    def _with_region(self, address: str) -> str:
        """Prefix the selected region's name unless the address already names the region."""
        if self.region.national or self.region.name in address:
            return address
        if any(k in address for k in self.region.keywords):
            return address
        return f"{self.region.name} {address}"

    def _geocode_row(
        self, i: int, prefix: str, fields: RowFields, cleaned: str, has_raw: bool
    ) -> GeocodeResult | None:
        """Road address, then lot address, then the facility name as a keyword.

        The first precise hit inside the region wins. A precise hit outside the region
        is kept only when nothing better turns up (region re-validation handles it).
        """
        attempts: list[tuple[str, str]] = []
        if fields.road_address:
            attempts.append(("도로명", fields.road_address))
        if fields.jibun_address and fields.jibun_address != fields.road_address:
            attempts.append(("지번", fields.jibun_address))

        fallback: GeocodeResult | None = None
        for label, address in attempts:
            query = self._with_region(parse_row(fields.name, address).address)
            self._log(f"{prefix}: 주소 검색 시도[{label}] -> \"{query}\"", Severity.INFO, i)
            calls = self.adapter.api_calls
            found = self.adapter.geocode_address(query)
            self._throttle(calls)
            if found is None:
                continue
            if found.is_precise and self.region.contains(found.lat, found.lng):
                return found
            if fallback is None or (found.is_precise and not fallback.is_precise):
                fallback = found
        if fallback is not None and fallback.is_precise:
            return fallback

        # 주소 검색 실패 + 원본 좌표 없음: 시설명 검색
        if not has_raw and len(cleaned) > 2:
            query = cleaned if self.region.national else f"{self.region.name} {cleaned}"
            self._log(f"{prefix}: [Fallback] 시설명 검색 시도 -> \"{query}\"", Severity.INFO, i)
            calls = self.adapter.api_calls
            found = self.adapter.keyword_search(query)
            self._throttle(calls)
            if found is not None and self.region.contains(found.lat, found.lng):
                self._log(f"{prefix}: [Fallback] 시설명 검색 결과로 좌표 부여", Severity.SUCCESS, i)
                return found
        return fallback

    def _fill_address(self, i: int, prefix: str, result: ValidationResult, cleaned: str) -> ValidationResult:
        """Raw coordinate kept without any address: use the reverse-geocoded one."""
        calls = self.adapter.api_calls
        reverse = self.adapter.reverse_geocode(result.lat, result.lng)
        self._throttle(calls)
        if not reverse:
            return result
        address = clean_address(reverse)
        if cleaned and cleaned not in address:
            address = f"{address} {cleaned}"
        self._log(f"{prefix}: 기존 좌표 기반 주소 획득 성공", Severity.SUCCESS, i)
        return result.with_coordinates(result.lat, result.lng, address=address).with_logs(
            LogEntry(f"역지오코딩 주소 보완: {address}", Severity.SUCCESS)
        )

    def _revalidate_region(
        self, i: int, prefix: str, result: ValidationResult, address: str, cleaned: str
    ) -> tuple[ValidationResult, bool]:
        if result.lat == 0 or result.lng == 0 or self.region.contains(result.lat, result.lng):
            return result, False
        self._log(
            f"{prefix}: 좌표가 {self.region.name} 범위를 벗어남({result.lat}, {result.lng})", Severity.WARNING, i
        )
        if self.region.national:
            return result, False

        query = address if self.region.name in address else f"{self.region.name} {address}"
        self._log(f"{prefix}: 주소 기반 좌표 재검색 시도({query})", Severity.INFO, i)
        calls = self.adapter.api_calls
        retry = self.adapter.geocode_address(query)
        self._throttle(calls)

        if retry is not None and retry.is_precise and self.region.contains(retry.lat, retry.lng):
            fixed_address = clean_address(retry.formatted_address)
            if cleaned and cleaned not in fixed_address:
                fixed_address = f"{fixed_address} {cleaned}"
            self._log(f"{prefix}: 주소 기반 좌표 복구 성공", Severity.SUCCESS, i)
            corrected = result.with_coordinates(retry.lat, retry.lng, address=fixed_address).with_logs(
                LogEntry(f"지역 재검증: 좌표 보정 ({retry.lat}, {retry.lng})", Severity.SUCCESS)
            )
            return corrected, True

        # 보정 실패: 판정(action)은 그대로 둔다
        self._log(f"{prefix}: 지역 재검증 실패 - 기존 판정 유지", Severity.WARNING, i)
        return result.with_logs(LogEntry("지역 재검증 실패: 좌표가 선택 지역 밖", Severity.WARNING)), False

    def _route(
        self, i: int, prefix: str, row: RawRow, fields: RowFields, result: ValidationResult, fixed: bool
    ) -> RowOutcome:
        if fixed:
            self.stats.fixed += 1

        if result.action is Action.IMMEDIATE:
            self.accepted.append(DirectoryRecord(
                id=f"t_{self.upload_id}_{i}",
                name=result.name,
                address=result.address,
                lat=result.lat,
                lng=result.lng,
                floor=result.floor,
                type=fields.facility_type,
                male_stalls=fields.male_stalls,
                female_stalls=fields.female_stalls,
                opening_hours=fields.opening_hours,
                note=_compose_note(fields),
            ))
            self.stats.immediate += 1
            self._log(f"{prefix}: [즉시등록] {result.name} - {result.reason}", Severity.SUCCESS, i)
        else:
            self.staged.append(StagingItem.from_result(
                f"s_{self.upload_id}_{i}",
                self.upload_id,
                result,
                name_raw=fields.name,
                address_raw=fields.address,
                lat_raw=fields.lat,
                lng_raw=fields.lng,
            ))
            if result.action is Action.REVIEW:
                self.stats.review += 1
                self._log(f"{prefix}: [검수필요] {result.name} - {result.reason}", Severity.WARNING, i)
            else:
                self.stats.reject += 1
                self.failures.append((list(row), result.reason))
                self._log(f"{prefix}: [등록불가] {result.name} - {result.reason}", Severity.ERROR, i)

        return RowOutcome.FIXED if fixed else _ACTION_OUTCOMES[result.action]

    def _fast_path_row(self, i: int, row: RawRow, column_map: ColumnMap) -> RowOutcome:
        fields = extract_fields(row, column_map)
        if not fields.name:
            self.stats.skipped += 1
            return RowOutcome.SKIPPED
        prefix = f"[{i + 1}/{self.stats.total}] {fields.name}"
        if self._check_duplicate(i, fields, f"{clean_name_for_search(fields.name)}|{fields.address}", fields.address, prefix):
            return RowOutcome.DUPLICATE

        floor, _ = extract_floor(fields.floor) if fields.floor else (None, "")
        if floor is None:
            try:
                floor = int(fields.floor) or DEFAULT_FLOOR
            except ValueError:
                floor = DEFAULT_FLOOR

        if not fields.has_coordinates:
            reason = "좌표 정보가 유효하지 않음"
            self._log(f"{prefix}: [누락] {reason}", Severity.WARNING, i)
            result = ValidationResult(
                name=fields.name, address=fields.address, floor=floor, lat=0.0, lng=0.0,
                action=Action.REJECT, reason=reason, logs=(LogEntry(f"정제 파일 행: {reason}", Severity.ERROR),),
            )
            return self._route(i, prefix, row, fields, result, False)

        self.accepted.append(DirectoryRecord(
            id=f"t_{self.upload_id}_{i}",
            name=fields.name,
            address=fields.address,
            lat=fields.lat,
            lng=fields.lng,
            floor=floor,
            type=fields.facility_type,
            male_stalls=fields.male_stalls,
            female_stalls=fields.female_stalls,
            opening_hours=fields.opening_hours,
            note=_compose_note(fields),
        ))
        self.stats.immediate += 1
        return RowOutcome.SUCCESS

    # --- outputs ---------------------------------------------------------------

    def _write_exports(self, header: Sequence[str]) -> dict[str, Path]:
        out_dir = Path(self.config.output_directory)
        now = datetime.now(UTC)
        exports: dict[str, Path] = {}
        try:
            if self.accepted:
                exports["accepted"] = write_accepted_csv(
                    self.accepted, out_dir / export_filename("Cleaned", self.region_key, now)
                )
            if self.failures:
                exports["errors"] = write_error_csv(
                    list(header), self.failures, out_dir / export_filename("Errors", self.region_key, now)
                )
            exports["log"] = write_log_csv(self.logs, out_dir / export_filename("Log", self.region_key, now))
        except OSError as e:
            logger.error(f"export failed: {e}")
        return exports

    def _outcome(self, aborted: bool) -> BatchOutcome:
        if aborted:
            return BatchOutcome.ABORTED
        if self.stats.reject > 0:
            return BatchOutcome.WITH_REJECTIONS
        if self.stats.review > 0:
            return BatchOutcome.PARTIAL_REVIEW
        return BatchOutcome.ALL_ACCEPTED

    def _build_batch(self, committed_ids: Sequence[str]) -> UploadBatch:
        return UploadBatch(
            id=self.upload_id,
            file_name=self._file_name,
            uploaded_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            total_count=self.stats.total,
            success_count=self.stats.immediate,
            review_count=self.stats.review,
            reject_count=self.stats.reject,
            duplicate_count=self.stats.duplicate,
            fixed_count=self.stats.fixed,
            uploaded_record_ids=tuple(committed_ids),
            logs=tuple(e.message for e in self.logs),
        )

    def _finish(
        self, start_time: datetime, aborted: bool, fast_path: bool, exports: dict[str, Path]
    ) -> BatchSummary:
        timings = BatchStatsAccumulator()
        committed: list[str] = []
        chunk_size = self.config.chunk_size
        error: Exception | None = None

        try:
            for chunk in _chunks(self.accepted, chunk_size):
                t0 = time.perf_counter()
                self.store.bulk_insert_records(chunk)
                timings.add_batch_time(time.perf_counter() - t0)
                committed.extend(r.id for r in chunk)
            if self.accepted:
                self._log(f"즉시 등록 대상 {len(committed)}건 저장 완료", Severity.SUCCESS)
            for chunk in _chunks(self.staged, chunk_size):
                t0 = time.perf_counter()
                self.store.persist_staging_items(chunk)
                timings.add_batch_time(time.perf_counter() - t0)
            if self.staged:
                self._log(f"검수 대상 {len(self.staged)}건 임시 저장 완료", Severity.SUCCESS)
            batch = self._build_batch(committed)
            self.store.persist_batch_metadata(batch)
        except BatchInsertError as e:
            error = e
            batch = self._build_batch(committed)
            self._log(f"저장 실패: {e} (커밋된 즉시 등록 {len(committed)}건)", Severity.ERROR)
            self.error_log.record(self._file_name, -1, SAVE_ERROR_TYPE, str(e))
            try:
                self.store.persist_batch_metadata(batch)
            except BatchInsertError as meta_error:
                logger.error(f"batch metadata not saved: {meta_error}")

        end_time = datetime.now(UTC)
        total_chunks, avg_chunk, p95_chunk = timings.get_stats()
        summary = BatchSummary(
            upload_id=self.upload_id,
            file_name=self._file_name,
            region_key=self.region_key,
            stats=self.stats,
            outcome=BatchOutcome.SAVE_FAILED if error is not None else self._outcome(aborted),
            fast_path=fast_path,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=(end_time - start_time).total_seconds(),
            api_calls=self.adapter.api_calls,
            cache_hits=self.adapter.cache_hits,
            batch=batch,
            exports=exports,
            write_chunks=total_chunks,
            avg_chunk_seconds=avg_chunk,
            p95_chunk_seconds=p95_chunk,
        )

        try:
            self.error_log.flush()
        except OSError as e:
            logger.error(f"error log flush failed: {e}")

        if error is not None:
            raise SaveFailedError(f"failed to persist outputs: {error}", batch, summary) from error
        return summary


def process_file(
    path: Path,
    config: ReconcileConfig,
    adapter: GeocodingAdapter,
    land_checker: LandChecker,
    store: DirectoryStore,
    *,
    region_key: str | None = None,
    encoding: str | None = None,
    fast_path: str | None = None,
    progress_factory: Callable[[int], ProgressSink] | None = None,
    on_run_created: Callable[[BatchRun], None] | None = None,
    error_log: ErrorLogBuffer | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchSummary:
    """Read one CSV file and run it through a fresh BatchRun.

    Raises:
        CsvFormatError: unreadable / undecodable file
        SaveFailedError: persistence failed
    """
    text = read_csv_text(path, encoding or config.encoding)
    header, rows = parse_with_header(text)
    column_map = detect_columns(header)

    mode = fast_path or config.fast_path
    use_fast_path = mode == "always" or (mode == "auto" and is_vetted_export(header))
    logger.info(
        f"file={path.name} rows={len(rows)} region={region_key or config.region} "
        f"fast_path={'yes' if use_fast_path else 'no'}"
    )

    progress = progress_factory(len(rows)) if progress_factory else None
    run = BatchRun(
        config, adapter, land_checker, store,
        region_key=region_key, progress=progress, error_log=error_log, sleep=sleep,
    )
    if on_run_created is not None:
        on_run_created(run)
    try:
        if use_fast_path:
            return run.run_fast_path(rows, column_map, path.name, header)
        return run.run(rows, column_map, path.name, header)
    finally:
        close = getattr(progress, "close", None)
        if close is not None:
            close()


def rollback_batch(
    store: DirectoryStore,
    upload_id: str,
    chunk_size: int = 50,
    on_progress: Callable[[int, int], None] | None = None,
) -> int:
    """Delete a batch's accepted records by recorded id and void the batch.

    Safe to call repeatedly: ids already gone are not an error.

    Returns:
        Number of records actually deleted by this call
    """
    batch = store.get_batch(upload_id)
    if batch is None:
        raise RollbackError(f"upload not found: {upload_id}")

    ids = list(batch.uploaded_record_ids)
    deleted = 0
    done = 0
    for chunk in _chunks(ids, chunk_size):
        try:
            deleted += store.bulk_delete_records(chunk)
        except BatchInsertError as e:
            raise RollbackError(f"rollback of {upload_id} stopped after {done}/{len(ids)} ids: {e}") from e
        done += len(chunk)
        if on_progress is not None:
            on_progress(done, len(ids))

    store.void_batch(upload_id)
    logger.info(f"rollback upload={upload_id} requested={len(ids)} deleted={deleted}")
    return deleted
