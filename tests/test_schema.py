"""
Tests for input row validation.
"""

import pytest

from assetmatch.schema import validate_input_row


class TestValidateInputRow:
    """Test per-kind row validation."""

    def test_valid_location_row(self):
        """Valid row should have no errors."""
        assert validate_input_row({"name": "Greenwood", "city": "Denver", "state": "CO"}, "location") == []

    @pytest.mark.parametrize("kind", ["location", "address"])
    def test_name_required(self, kind):
        """Missing or blank name should error."""
        for data in ({"city": "Denver"}, {"name": "   "}):
            errors = validate_input_row(data, kind)
            assert any("name" in err.lower() for err in errors)

    def test_reference_row_with_code_only(self):
        """A reference code alone is enough to match on."""
        assert validate_input_row({"name": "", "reference_code": "12345"}, "reference") == []

    def test_reference_row_with_name_only(self):
        assert validate_input_row({"name": "Greenwood"}, "reference") == []

    def test_reference_row_needs_something(self):
        errors = validate_input_row({"name": " ", "reference_code": ""}, "reference")
        assert errors == ["Row needs a name or a reference code"]

    def test_non_string_field(self):
        """Typed fields must be strings when present."""
        errors = validate_input_row({"name": "A", "city": 12}, "location")
        assert any("city" in err for err in errors)

    def test_none_optional_field_allowed(self):
        assert validate_input_row({"name": "A", "state": None}, "location") == []

    def test_overlong_state(self):
        """A shifted column (street address in the state slot) is rejected."""
        errors = validate_input_row({"name": "A", "state": "x" * 40}, "location")
        assert any("state" in err for err in errors)

    def test_unknown_kind(self):
        errors = validate_input_row({"name": "A"}, "bogus")
        assert errors == ["Unknown input kind: bogus"]
