"""Typed records shared by the matcher, enrichment and export layers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MatchMethod(str, Enum):
    EXACT_REFERENCE = "ExactReference"
    FUZZY_NAME = "FuzzyName"
    NONE = "None"


class Tier(str, Enum):
    HIGH = "high"
    GOOD = "good"
    WEAK = "weak"
    MARGINAL = "marginal"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _TIER_RANKS[self]

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]

    @classmethod
    def from_score(cls, score: float) -> "Tier":
        if score >= 0.9:
            return cls.HIGH
        if score >= 0.8:
            return cls.GOOD
        if score >= 0.6:
            return cls.WEAK
        if score > 0:
            return cls.MARGINAL
        return cls.NONE


_TIER_RANKS = {
    Tier.HIGH: 4,
    Tier.GOOD: 3,
    Tier.WEAK: 2,
    Tier.MARGINAL: 1,
    Tier.NONE: 0,
}

_TIER_LABELS = {
    Tier.HIGH: "success",
    Tier.GOOD: "caution",
    Tier.WEAK: "warning",
    Tier.MARGINAL: "danger",
    Tier.NONE: "muted",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class InputRecord:
    name: str = ""
    reference_code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "InputRecord":
        """Build from a loosely-typed row; blank optional fields become None."""
        return cls(
            name=_text(row.get("name")),
            reference_code=_text(row.get("reference_code")) or None,
            address=_text(row.get("address")) or None,
            city=_text(row.get("city")) or None,
            state=_text(row.get("state")) or None,
        )


@dataclass(frozen=True)
class ReferenceTag:
    key: str
    value: str
    id: str = ""
    name: str = ""

    @classmethod
    def from_api(cls, data: Any) -> "ReferenceTag":
        # Older payloads carry bare strings instead of {key, value} objects.
        if isinstance(data, dict):
            return cls(
                key=_text(data.get("key")) or "id",
                value=_text(data.get("value")),
                id=_text(data.get("id")),
                name=_text(data.get("name")),
            )
        return cls(key="id", value=_text(data))


@dataclass(frozen=True)
class AssetReference:
    """One reference of one asset, as listed by the per-asset lookup."""

    asset_id: str
    reference_id: str
    name: str
    key: str
    value: str

    @classmethod
    def of(cls, asset_id: str, tag: ReferenceTag) -> "AssetReference":
        return cls(str(asset_id), tag.id, tag.name, tag.key, tag.value)


@dataclass
class CandidateEntity:
    """A catalog asset. Only the enrichment step assigns ``references``."""

    id: str
    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    references: List[ReferenceTag] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CandidateEntity":
        nested = data.get("address") if isinstance(data.get("address"), dict) else {}
        tags = data.get("tags") if isinstance(data.get("tags"), list) else []
        return cls(
            id=_text(data.get("id")),
            name=_text(data.get("name")),
            address=_text(data.get("address_line1")),
            city=_text(data.get("address_city") or nested.get("city")),
            state=_text(data.get("address_state") or nested.get("state")),
            tags=[t for t in (_text(tag) for tag in tags) if t],
        )

    @property
    def location(self) -> str:
        if self.city and self.state:
            return f"{self.city}, {self.state}"
        return self.city or self.state

    def reference_string(self) -> str:
        return " | ".join(f"{tag.key}: {tag.value}" for tag in self.references)


@dataclass(frozen=True)
class MatchResult:
    record: InputRecord
    score: float
    method: MatchMethod
    candidate: Optional[CandidateEntity] = None
    raw_score: float = 0.0
    address_score: Optional[float] = None

    @property
    def tier(self) -> Tier:
        return Tier.from_score(self.score)

    @property
    def matched_entity_id(self) -> Optional[str]:
        return self.candidate.id if self.candidate else None

    @property
    def matched_label(self) -> str:
        """Candidate name qualified by how much the score can be trusted."""
        if self.candidate is None:
            return "No match found"
        tier = self.tier
        if tier in (Tier.HIGH, Tier.GOOD):
            return self.candidate.name
        if tier is Tier.WEAK:
            return f"Guess: {self.candidate.name}"
        return f"Weak: {self.candidate.name}"


@dataclass(frozen=True)
class UnitReference:
    asset_id: str
    group_id: str
    group_name: str
    unit_id: str
    key: str
    value: str
