from typing import Any, Dict, List

STR_FIELDS = ["name", "reference_code", "address", "city", "state"]
KIND_REQUIREMENTS = {
    # Reference rows can match on the code alone.
    "reference": [],
    "location": ["name"],
    "address": ["name"],
}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_input_row(data: Dict[str, Any], kind: str = "location") -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    if kind not in KIND_REQUIREMENTS:
        return [f"Unknown input kind: {kind}"]

    errors: List[str] = []

    for f in STR_FIELDS:
        if f in data and data[f] is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    for f in KIND_REQUIREMENTS[kind]:
        if not _is_non_empty_str(data.get(f)):
            errors.append(f"Field '{f}' must be a non-empty string")

    if kind == "reference":
        if not _is_non_empty_str(data.get("name")) and not _is_non_empty_str(data.get("reference_code")):
            errors.append("Row needs a name or a reference code")

    state = data.get("state")
    if _is_non_empty_str(state) and len(state.strip()) > 32:
        errors.append("Field 'state' is too long to be a state or province")

    return errors
