#!/usr/bin/env python3
"""Sample dataset generator for the bulk reconciliation pipeline.

Writes a synthetic public-toilet CSV in the shape municipalities publish:
- Header row: 구분, 화장실명, 소재지도로명주소, 소재지지번주소, 남성용-대변기수,
  여성용-대변기수, 개방시간상세, WGS84위도, WGS84경도
- Data rows mixing clean records with the noise the classifier has to handle:
  floor tokens in names, basement floors, missing coordinates, coordinates outside
  the region, exact duplicates and rows without a name.

`--vetted` writes the accepted-export layout instead (fast-path input).
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

# (지역명, 구, 위도 중심, 경도 중심)
DISTRICTS = [
    ("서울특별시", "종로구", 37.5735, 126.9790),
    ("서울특별시", "중구", 37.5641, 126.9979),
    ("서울특별시", "강남구", 37.5172, 127.0473),
    ("서울특별시", "마포구", 37.5663, 126.9019),
    ("서울특별시", "송파구", 37.5145, 127.1059),
]
PLACES = ["역", "공원", "시장", "주민센터", "도서관", "체육관", "터미널", "광장"]
STREETS = ["세종대로", "종로", "테헤란로", "월드컵로", "올림픽로", "을지로"]
TYPES = ["공중화장실", "개방화장실", "이동화장실"]
HOURS = ["24시간", "09:00~18:00", "06:00~22:00", ""]

RAW_HEADER = [
    "구분", "화장실명", "소재지도로명주소", "소재지지번주소", "남성용-대변기수",
    "여성용-대변기수", "개방시간상세", "WGS84위도", "WGS84경도",
]
VETTED_HEADER = [
    "구분", "화장실명", "주소", "층수", "남성변기수", "여성변기수", "개방시간상세", "WGS84위도", "WGS84경도",
]


def generate_rows(rows: int, seed: int = 42, noise: float = 0.2) -> pd.DataFrame:
    """Synthetic raw rows.

    Args:
        rows: Number of data rows
        seed: Random seed for reproducible data
        noise: Share of rows carrying one of the defects listed in the module docstring
    """
    np.random.seed(seed)
    records: list[dict[str, Any]] = []
    for i in range(rows):
        city, gu, lat0, lng0 = DISTRICTS[np.random.randint(len(DISTRICTS))]
        place = f"{gu[:-1]}{PLACES[np.random.randint(len(PLACES))]}"
        street = STREETS[np.random.randint(len(STREETS))]
        number = np.random.randint(1, 300)
        lat = round(lat0 + np.random.uniform(-0.01, 0.01), 6)
        lng = round(lng0 + np.random.uniform(-0.01, 0.01), 6)
        record = {
            "구분": TYPES[np.random.randint(len(TYPES))],
            "화장실명": f"{place} 화장실",
            "소재지도로명주소": f"{city} {gu} {street} {number}",
            "소재지지번주소": f"{city} {gu} {np.random.randint(1, 200)}-{np.random.randint(1, 30)}",
            "남성용-대변기수": int(np.random.randint(0, 6)),
            "여성용-대변기수": int(np.random.randint(0, 8)),
            "개방시간상세": HOURS[np.random.randint(len(HOURS))],
            "WGS84위도": lat,
            "WGS84경도": lng,
        }

        if np.random.random() < noise:
            defect = np.random.randint(6)
            if defect == 0:
                record["화장실명"] = f"{place} 화장실({np.random.randint(1, 5)}층)"
            elif defect == 1:
                record["화장실명"] = f"{place} 지하{np.random.randint(1, 3)}층 화장실"
            elif defect == 2:
                record["WGS84위도"] = ""
                record["WGS84경도"] = ""
            elif defect == 3:
                # 부산 좌표: 서울 지역 선택 시 범위 밖
                record["WGS84위도"] = 35.1796
                record["WGS84경도"] = 129.0756
            elif defect == 4 and records:
                record = dict(records[-1])
            else:
                record["화장실명"] = ""
        records.append(record)

    return pd.DataFrame(records, columns=RAW_HEADER)


def to_vetted(df: pd.DataFrame) -> pd.DataFrame:
    """Accepted-export layout (주소 = road address, 층수 = 1)."""
    out = pd.DataFrame({
        "구분": df["구분"],
        "화장실명": df["화장실명"],
        "주소": df["소재지도로명주소"],
        "층수": 1,
        "남성변기수": df["남성용-대변기수"],
        "여성변기수": df["여성용-대변기수"],
        "개방시간상세": df["개방시간상세"],
        "WGS84위도": df["WGS84위도"],
        "WGS84경도": df["WGS84경도"],
    })
    return out[VETTED_HEADER]


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic facility CSV for bulk-reconcile",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/sample.csv --rows 500
  %(prog)s data/sample_cp949.csv --rows 200 --encoding cp949
  %(prog)s data/vetted.csv --rows 1000 --vetted
        """,
    )
    parser.add_argument("output", type=Path, help="Output CSV path")
    parser.add_argument("--rows", type=int, default=500, help="Number of data rows (default: 500)")
    parser.add_argument("--noise", type=float, default=0.2, help="Share of defective rows (default: 0.2)")
    parser.add_argument("--encoding", default="utf-8-sig", help="utf-8-sig | cp949 | euc-kr")
    parser.add_argument("--vetted", action="store_true", help="Write the accepted-export layout")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if not 0 <= args.noise <= 1:
        print("Error: --noise must be between 0 and 1", file=sys.stderr)
        return 1

    df = generate_rows(args.rows, args.seed, 0.0 if args.vetted else args.noise)
    if args.vetted:
        df = to_vetted(df)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, index=False, encoding=args.encoding)
    print(f"Created CSV: {args.output}")
    print(f"  Rows: {len(df):,}  Columns: {len(df.columns)}  Encoding: {args.encoding}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
