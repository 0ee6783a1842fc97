"""
Entity Resolution Matcher.

Responsibilities:
- Scan every candidate for each input record and keep the best pair.
- Short-circuit on an exact reference-code hit.
- Return one explainable MatchResult per input.

Non-Responsibilities:
- No network access or enrichment.
- No mutation of candidates.
- No ordering of results (see ranking).

Invariant:
Deterministic given the same inputs: ties keep the first-seen candidate
in the order the data source returned them.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Sequence

from .logger import get_logger
from .models import CandidateEntity, InputRecord, MatchMethod, MatchResult
from .normalize import normalize_reference
from .scoring import (
    FUZZY_SCORE_CAP,
    NormalizedFields,
    Profile,
    fuzzy_pair_score,
    resolve_profile,
)

EXACT_SCORE = 1.0

logger = get_logger()


@dataclass(frozen=True)
class PreparedCandidate:
    candidate: CandidateEntity
    fields: NormalizedFields
    reference_values: FrozenSet[str]


def prepare_candidates(candidates: Iterable[CandidateEntity]) -> List[PreparedCandidate]:
    """Normalize candidate fields once per run instead of once per input."""
    prepared = []
    for c in candidates:
        references = getattr(c, "references", None) or []
        prepared.append(
            PreparedCandidate(
                candidate=c,
                fields=NormalizedFields.of(
                    getattr(c, "name", ""),
                    getattr(c, "address", ""),
                    getattr(c, "city", ""),
                    getattr(c, "state", ""),
                ),
                reference_values=frozenset(
                    v for v in (normalize_reference(t.value) for t in references) if v
                ),
            )
        )
    return prepared


def _match_prepared(
    record: InputRecord, prepared: Sequence[PreparedCandidate], profile: str
) -> MatchResult:
    code = normalize_reference(record.reference_code)
    query = NormalizedFields.of(record.name, record.address, record.city, record.state)
    resolved = resolve_profile(profile, has_address=bool(query.address))

    best_score = 0.0
    best_method = MatchMethod.NONE
    best_candidate = None
    best_address = None

    for item in prepared:
        if code and code in item.reference_values:
            return MatchResult(
                record=record,
                score=EXACT_SCORE,
                method=MatchMethod.EXACT_REFERENCE,
                candidate=item.candidate,
                raw_score=EXACT_SCORE,
            )
        if not query.name:
            continue
        pair = fuzzy_pair_score(query, item.fields, resolved)
        if pair.score > best_score:
            best_score = pair.score
            best_method = MatchMethod.FUZZY_NAME
            best_candidate = item.candidate
            best_address = pair.address_score

    if best_candidate is None:
        return MatchResult(record=record, score=0.0, method=MatchMethod.NONE)

    return MatchResult(
        record=record,
        score=min(best_score, FUZZY_SCORE_CAP),
        method=best_method,
        candidate=best_candidate,
        raw_score=best_score,
        address_score=best_address,
    )


def match_record(
    record: InputRecord,
    candidates: Sequence[CandidateEntity],
    profile: str = Profile.AUTO,
) -> MatchResult:
    return _match_prepared(record, prepare_candidates(candidates), profile)


def match_records(
    records: Sequence[InputRecord],
    candidates: Sequence[CandidateEntity],
    profile: str = Profile.AUTO,
) -> List[MatchResult]:
    """Best match for every record, in input order."""
    prepared = prepare_candidates(candidates)
    results = [_match_prepared(r, prepared, profile) for r in records]
    matched = sum(1 for r in results if r.candidate is not None)
    logger.info(
        "Matching complete",
        inputs=len(records),
        candidates=len(prepared),
        matched=matched,
        profile=profile,
    )
    return results
