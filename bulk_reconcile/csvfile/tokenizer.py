from __future__ import annotations

from pathlib import Path

"""CSV tokenizer.

RFC4180-ish: quoted fields may contain commas, newlines and doubled quotes; CRLF,
LF and bare CR all end a record; the last record needs no terminator. Cells are
trimmed (quoted ones too, so edge whitespace never survives an export round-trip)
and records whose cells are all empty are dropped. Malformed quoting never
raises: a quote still open at end of input is re-read as a literal character.
"""

__all__ = [
    "CsvFormatError",
    "AUTO_ENCODINGS",
    "parse",
    "parse_with_header",
    "read_csv_text",
]

BOM = "\ufeff"

# encoding=auto 일 때 시도 순서 (공공데이터 CSV 는 cp949/euc-kr 이 많음)
AUTO_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "utf-8", "cp949", "euc-kr")


class CsvFormatError(Exception):
    """Raised when an input file cannot be read or decoded."""


def _tokenize(text: str, literal_quotes: set[int]) -> tuple[list[list[str]], int | None]:
    """Single pass. Returns (records, index of an unterminated opening quote or None)."""
    records: list[list[str]] = []
    record: list[str] = []
    field: list[str] = []
    in_quote = False
    quote_start = -1
    field_started = False  # 현재 필드에 문자가 들어왔는지 (따옴표는 필드 시작에서만 인용으로 인정)

    def end_field() -> None:
        nonlocal field, field_started
        record.append("".join(field).strip())
        field = []
        field_started = False

    def end_record() -> None:
        nonlocal record
        end_field()
        if any(cell != "" for cell in record):
            records.append(record)
        record = []

    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_quote:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    field.append('"')
                    i += 2
                    continue
                in_quote = False
            else:
                field.append(ch)
            i += 1
            continue

        if ch == '"' and i not in literal_quotes and not "".join(field).strip():
            # 필드 앞 공백은 인용 필드에서 버림
            field = []
            in_quote = True
            quote_start = i
            field_started = True
        elif ch == ",":
            end_field()
        elif ch == "\r" or ch == "\n":
            end_record()
            if ch == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
        else:
            field.append(ch)
            field_started = True
        i += 1

    if in_quote:
        return records, quote_start
    if field_started or field or record:
        end_record()
    return records, None


def _tokenize_all(text: str) -> list[list[str]]:
    if text.startswith(BOM):
        text = text[1:]
    literal_quotes: set[int] = set()
    while True:
        records, unterminated = _tokenize(text, literal_quotes)
        if unterminated is None:
            return records
        # 끝까지 닫히지 않은 따옴표는 일반 문자로 보고 다시 읽는다
        literal_quotes.add(unterminated)


def parse(text: str) -> list[list[str]]:
    """Tokenize CSV text and return the data rows (header excluded, 0-indexed)."""
    return parse_with_header(text)[1]


def parse_with_header(text: str) -> tuple[list[str], list[list[str]]]:
    """Tokenize CSV text into (header cells, data rows)."""
    records = _tokenize_all(text)
    if not records:
        return [], []
    header = [cell.replace('"', "").strip() for cell in records[0]]
    return header, records[1:]


def read_csv_text(path: Path, encoding: str = "auto") -> str:
    """Read and decode an input CSV.

    Args:
        path: CSV file path
        encoding: codec name, or "auto" to try AUTO_ENCODINGS in order

    Raises:
        CsvFormatError: file missing/unreadable, or no candidate codec decodes it
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise CsvFormatError(f"cannot read {path}: {e}") from e

    candidates = AUTO_ENCODINGS if encoding == "auto" else (encoding,)
    last_error: Exception | None = None
    for codec in candidates:
        try:
            text = raw.decode(codec)
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except LookupError as e:
            raise CsvFormatError(f"unknown encoding: {codec}") from e
        return text[1:] if text.startswith(BOM) else text
    raise CsvFormatError(f"cannot decode {path.name} with {', '.join(candidates)}: {last_error}")
