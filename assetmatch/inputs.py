"""CSV input files for the matching workflows."""

import csv
import io
import re
from pathlib import Path
from typing import Dict, List, Sequence

from .logger import get_logger
from .models import InputRecord
from .schema import validate_input_row

logger = get_logger()

TEMPLATES = {
    "reference": "Property Name,Reference ID\nGreenwood Apartments,12345\nSunrise Villas,99-88-77\n",
    "location": "Property Name,City,State\nGreenwood Apartments,Denver,CO\nSunrise Villas,Austin,TX\n",
    "address": "Name,Address,City,State\nThe Lofts,100 Main St,Denver,CO\nSunrise Apts,555 Broad Ave,Austin,TX\n",
    "unit-refs": "asset_id\n1323\n4500\n",
    "asset-refs": "asset_id\n4715\n12345\n",
}

# Column order used when a file has no header row.
DEFAULT_COLUMNS = {
    "reference": ["name", "reference_code"],
    "location": ["name", "city", "state"],
    "address": ["name", "address", "city", "state"],
}

HEADER_KEYWORDS = {
    "reference": {"name", "property", "reference", "ref", "id"},
    "location": {"name", "property"},
    "address": {"name", "address"},
}

_WORD_RE = re.compile(r"[a-z]+")


def template(kind: str) -> str:
    if kind not in TEMPLATES:
        raise ValueError(f"No template for {kind!r}. Choose one of: {', '.join(TEMPLATES)}")
    return TEMPLATES[kind]


def _words(cell: str) -> set:
    return set(_WORD_RE.findall(cell.lower()))


def _is_header(row: Sequence[str], kind: str) -> bool:
    keywords = HEADER_KEYWORDS[kind]
    return any(_words(cell) & keywords for cell in row)


def _reference_columns(header: Sequence[str]) -> List[str]:
    name_idx, ref_idx = 0, 1
    for i, cell in enumerate(header):
        words = _words(cell)
        if words & {"ref", "reference", "id", "code"}:
            ref_idx = i
        if words & {"name", "property"}:
            name_idx = i
    width = max(name_idx, ref_idx) + 1
    columns = [""] * width
    columns[ref_idx] = "reference_code"
    columns[name_idx] = "name"
    return columns


def _rows(text: str) -> List[List[str]]:
    return [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]


def parse_records(text: str, kind: str) -> List[InputRecord]:
    """Parse CSV text into input records, skipping rows that fail validation."""
    if kind not in DEFAULT_COLUMNS:
        raise ValueError(f"Unknown input kind: {kind!r}")

    rows = _rows(text)
    if not rows:
        return []

    columns = DEFAULT_COLUMNS[kind]
    if _is_header(rows[0], kind):
        if kind == "reference":
            columns = _reference_columns(rows[0])
        rows = rows[1:]

    records: List[InputRecord] = []
    for line_no, row in enumerate(rows, start=1):
        data: Dict[str, str] = {}
        for i, column in enumerate(columns):
            if column and i < len(row):
                data[column] = row[i].strip()
        errors = validate_input_row(data, kind)
        if errors:
            logger.warning("Skipping invalid input row", row=line_no, errors=errors)
            continue
        records.append(InputRecord.from_row(data))
    return records


def read_records(path: Path, kind: str) -> List[InputRecord]:
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        return parse_records(f.read(), kind)


def parse_asset_ids(text: str) -> List[str]:
    rows = _rows(text)
    if not rows:
        return []

    id_idx = 0
    header = [cell.strip().lower() for cell in rows[0]]
    found = next((i for i, h in enumerate(header) if "asset_id" in h or "assetid" in h), None)
    if found is not None:
        id_idx = found
        rows = rows[1:]

    ids = []
    for row in rows:
        if len(row) > id_idx:
            value = row[id_idx].strip()
            if value.isdigit():
                ids.append(value)
    return ids


def read_asset_ids(path: Path) -> List[str]:
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        return parse_asset_ids(f.read())
