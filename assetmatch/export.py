"""Flatten run results for CSV, clipboard (TSV) and JSON output."""

import csv
import io
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from .models import AssetReference, CandidateEntity, MatchResult, UnitReference

RESULT_COLUMNS = [
    "input_name",
    "input_reference",
    "input_address",
    "input_city",
    "input_state",
    "score",
    "tier",
    "method",
    "matched_id",
    "matched_name",
    "matched_address",
    "matched_location",
    "matched_references",
    "address_score",
]

UNIT_REFERENCE_COLUMNS = ["asset_id", "group_name", "group_id", "unit_id", "key", "value"]

ASSET_REFERENCE_COLUMNS = ["asset_id", "reference_id", "name", "key", "value"]

ASSET_COLUMNS = ["id", "name", "address_line1", "address_city", "address_state", "tags"]


def result_row(result: MatchResult) -> Dict[str, Any]:
    record = result.record
    candidate = result.candidate
    return {
        "input_name": record.name,
        "input_reference": record.reference_code or "",
        "input_address": record.address or "",
        "input_city": record.city or "",
        "input_state": record.state or "",
        "score": f"{result.score:.3f}",
        "tier": result.tier.value,
        "method": result.method.value,
        "matched_id": candidate.id if candidate else "",
        "matched_name": result.matched_label,
        "matched_address": candidate.address if candidate else "",
        "matched_location": candidate.location if candidate else "",
        "matched_references": candidate.reference_string() if candidate else "",
        "address_score": "" if result.address_score is None else f"{result.address_score:.3f}",
    }


def result_rows(results: Iterable[MatchResult]) -> List[Dict[str, Any]]:
    return [result_row(r) for r in results]


def unit_reference_rows(refs: Iterable[UnitReference]) -> List[Dict[str, Any]]:
    return [{c: getattr(ref, c) for c in UNIT_REFERENCE_COLUMNS} for ref in refs]


def asset_reference_rows(refs: Iterable[AssetReference]) -> List[Dict[str, Any]]:
    return [{c: getattr(ref, c) for c in ASSET_REFERENCE_COLUMNS} for ref in refs]


def asset_rows(assets: Iterable[CandidateEntity]) -> List[Dict[str, Any]]:
    return [
        {
            "id": a.id,
            "name": a.name,
            "address_line1": a.address,
            "address_city": a.city,
            "address_state": a.state,
            "tags": ";".join(a.tags),
        }
        for a in assets
    ]


def to_csv(rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=list(columns), extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue()


def to_tsv(rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> str:
    # Tabs and newlines inside values would break the paste grid.
    def clean(v: Any) -> str:
        return " ".join(str(v).split()) if v is not None else ""

    lines = ["\t".join(columns)]
    lines.extend("\t".join(clean(row.get(c, "")) for c in columns) for row in rows)
    return "\n".join(lines) + "\n"


def write_csv(path: Path, rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(to_csv(rows, columns))


def save_json(path: Path, rows: Sequence[Dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(list(rows), f, indent=2, ensure_ascii=False)
