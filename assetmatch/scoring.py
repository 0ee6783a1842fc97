"""
Scoring Logic for Entity Resolution.

Responsibilities:
- Blend field similarities into one pair score per weighting profile.
- Keep the weights fixed so scores stay comparable between runs.

Non-Responsibilities:
- No candidate iteration.
- No reference-code short-circuit (see matcher).
- No tier thresholds.

Invariant:
Given identical inputs, these functions always return the same score.
Only the final combined score is clamped; the address numeric bonus is
added unbounded before that clamp.
"""

from dataclasses import dataclass

from .normalize import normalize_address, normalize_name, normalize_text
from .similarity import edit_similarity, numeric_bonus, token_overlap

# Fuzzy results never reach an exact reference hit (1.0).
FUZZY_SCORE_CAP = 0.9

NAME_EDIT_WEIGHT = 0.6
NAME_TOKEN_WEIGHT = 0.4

LOCATION_NAME_WEIGHT = 0.7
LOCATION_CITY_WEIGHT = 0.2
LOCATION_STATE_WEIGHT = 0.1

ADDRESS_NAME_EDIT_WEIGHT = 0.4
ADDRESS_NAME_TOKEN_WEIGHT = 0.3
ADDRESS_EDIT_WEIGHT = 0.2
ADDRESS_TOKEN_WEIGHT = 0.1


@dataclass(frozen=True)
class PairScore:
    score: float
    address_score: float | None = None


def _present_edit(a: str, b: str) -> float:
    # An absent field on either side contributes nothing.
    if not a or not b:
        return 0.0
    return edit_similarity(a, b)


def name_score(name_a: str, name_b: str) -> float:
    """Blend of edit and token similarity on canonical names."""
    return (
        NAME_EDIT_WEIGHT * _present_edit(name_a, name_b)
        + NAME_TOKEN_WEIGHT * token_overlap(name_a, name_b)
    )


def reference_profile_score(name_a: str, name_b: str) -> float:
    return name_score(name_a, name_b) * FUZZY_SCORE_CAP


def location_profile_score(
    name_a: str, name_b: str, city_a: str, city_b: str, state_a: str, state_b: str
) -> float:
    state_exact = 1.0 if state_a and state_a == state_b else 0.0
    return min(
        1.0,
        LOCATION_NAME_WEIGHT * name_score(name_a, name_b)
        + LOCATION_CITY_WEIGHT * _present_edit(city_a, city_b)
        + LOCATION_STATE_WEIGHT * state_exact,
    )


def address_profile_score(name_a: str, name_b: str, addr_a: str, addr_b: str) -> PairScore:
    """Name plus street address; also reports the address proximity alone."""
    addr_edit = _present_edit(addr_a, addr_b)
    score = min(
        1.0,
        ADDRESS_NAME_EDIT_WEIGHT * _present_edit(name_a, name_b)
        + ADDRESS_NAME_TOKEN_WEIGHT * token_overlap(name_a, name_b)
        + ADDRESS_EDIT_WEIGHT * addr_edit
        + ADDRESS_TOKEN_WEIGHT * token_overlap(addr_a, addr_b)
        + numeric_bonus(addr_a, addr_b),
    )
    return PairScore(score=score, address_score=addr_edit)


class Profile:
    """Weighting profile names accepted by the matcher."""

    REFERENCE = "reference"
    LOCATION = "location"
    ADDRESS = "address"
    AUTO = "auto"

    ALL = (REFERENCE, LOCATION, ADDRESS, AUTO)


@dataclass(frozen=True)
class NormalizedFields:
    name: str
    address: str
    city: str
    state: str

    @classmethod
    def of(cls, name, address, city, state) -> "NormalizedFields":
        return cls(
            name=normalize_name(name),
            address=normalize_address(address),
            city=normalize_text(city),
            state=normalize_text(state),
        )


def resolve_profile(profile: str, has_address: bool) -> str:
    if profile not in Profile.ALL:
        raise ValueError(f"Unknown scoring profile: {profile!r}")
    if profile == Profile.AUTO:
        return Profile.ADDRESS if has_address else Profile.LOCATION
    return profile


def fuzzy_pair_score(query: NormalizedFields, candidate: NormalizedFields, profile: str) -> PairScore:
    """Score one (input, candidate) pair under an already-resolved profile."""
    if profile == Profile.REFERENCE:
        return PairScore(reference_profile_score(query.name, candidate.name))
    if profile == Profile.LOCATION:
        return PairScore(
            location_profile_score(
                query.name, candidate.name,
                query.city, candidate.city,
                query.state, candidate.state,
            )
        )
    if profile == Profile.ADDRESS:
        return address_profile_score(query.name, candidate.name, query.address, candidate.address)
    raise ValueError(f"Unresolved scoring profile: {profile!r}")
