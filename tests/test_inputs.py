"""
Tests for CSV input parsing.
"""

import pytest

from assetmatch.inputs import (
    TEMPLATES,
    parse_asset_ids,
    parse_records,
    read_asset_ids,
    read_records,
    template,
)
from assetmatch.models import InputRecord


class TestParseRecords:
    """Header detection and column mapping."""

    def test_reference_with_header(self):
        records = parse_records("Property Name,Reference ID\nGreenwood,12345\nSunrise Villas,\n", "reference")
        assert records == [
            InputRecord(name="Greenwood", reference_code="12345"),
            InputRecord(name="Sunrise Villas"),
        ]

    def test_reference_columns_swapped(self):
        records = parse_records("Ref Code,Property\nAB-1,Oak Plaza\n", "reference")
        assert records == [InputRecord(name="Oak Plaza", reference_code="AB-1")]

    def test_headerless_uses_default_order(self):
        records = parse_records("Greenwood,12345\n", "reference")
        assert records == [InputRecord(name="Greenwood", reference_code="12345")]

    def test_data_row_not_mistaken_for_header(self):
        """'Ridgeview' contains 'id' but is not the word 'id'."""
        records = parse_records("Ridgeview Commons,555\n", "reference")
        assert records == [InputRecord(name="Ridgeview Commons", reference_code="555")]

    def test_location(self):
        records = parse_records(TEMPLATES["location"], "location")
        assert records[0] == InputRecord(name="Greenwood Apartments", city="Denver", state="CO")
        assert len(records) == 2

    def test_address(self):
        records = parse_records(TEMPLATES["address"], "address")
        assert records[0].address == "100 Main St"
        assert records[1].state == "TX"

    def test_short_rows_and_blank_lines(self):
        records = parse_records("Name,City,State\n\nOak Plaza\n , , \n", "location")
        assert records == [InputRecord(name="Oak Plaza")]

    def test_invalid_rows_skipped(self):
        records = parse_records("Name,City,State\n,Denver,CO\nOak,Portland,OR\n", "location")
        assert [r.name for r in records] == ["Oak"]

    def test_quoted_fields(self):
        records = parse_records('Name,Address\n"Lofts, The","1701 Wynkoop St"\n', "address")
        assert records == [InputRecord(name="Lofts, The", address="1701 Wynkoop St")]

    def test_empty(self):
        assert parse_records("", "location") == []

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            parse_records("a,b", "unit-refs")


class TestReadFiles:
    def test_read_records_strips_bom(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("\ufeffProperty Name,Reference ID\nGreenwood,12345\n", encoding="utf-8")
        assert read_records(path, "reference") == [InputRecord(name="Greenwood", reference_code="12345")]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_records(tmp_path / "nope.csv", "reference")

    def test_read_asset_ids(self, tmp_path):
        path = tmp_path / "ids.csv"
        path.write_text("name,Asset_ID\nA,1323\nB,abc\nC, 4500 \n", encoding="utf-8")
        assert read_asset_ids(path) == ["1323", "4500"]


class TestAssetIds:
    def test_headerless(self):
        assert parse_asset_ids("1323\n4500\n") == ["1323", "4500"]

    def test_template_round_trip(self):
        assert parse_asset_ids(template("unit-refs")) == ["1323", "4500"]

    def test_asset_refs_template(self):
        assert parse_asset_ids(template("asset-refs")) == ["4715", "12345"]


class TestTemplates:
    @pytest.mark.parametrize("kind", ["reference", "location", "address"])
    def test_templates_parse(self, kind):
        assert len(parse_records(template(kind), kind)) == 2

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            template("expenses")
