"""Tests for BOM file parsing."""

import asyncio

import pytest

from src.inquiry.bom_parser import BOMParser, resolve_columns
from src.inquiry.models import Urgency


@pytest.fixture
def parser(catalog):
    return BOMParser(catalog=catalog)


class TestHeaderResolution:
    """Test the column schema and required columns."""

    def test_resolve_synonyms(self):
        """Test that accepted synonyms map to canonical fields."""
        columns = resolve_columns(["partnumber", "qty", "brand", "remarks"])

        assert columns["part_number"] == [0]
        assert columns["quantity"] == [1]
        assert columns["manufacturer"] == [2]
        assert columns["notes"] == [3]
        assert "category" not in columns

    def test_missing_quantity_column_fails_at_file_level(self, parser):
        """Test a file without any quantity column."""
        result = parser.parse("part_number,manufacturer\nSTM32F401,ST\nESP32,Espressif")

        assert result.success is False
        assert result.products == []
        assert len(result.errors) == 1
        assert result.errors[0].row == 0
        assert result.errors[0].kind == "missing_columns"
        assert "quantity" in result.errors[0].message
        assert result.file_error is True

    def test_missing_both_columns(self, parser):
        """Test a file with neither required column."""
        result = parser.parse("name,category\nWidget,Misc")

        assert len(result.errors) == 1
        assert "part_number" in result.errors[0].message
        assert "quantity" in result.errors[0].message

    def test_header_is_case_insensitive(self, parser):
        """Test upper-case and padded headers."""
        result = parser.parse(" Part_Number , QTY \nSTM32F401,5")

        assert result.success is True
        assert result.products[0].quantity == 5

    def test_model_column_counts_as_part_number(self, parser):
        """Test the model synonym."""
        result = parser.parse("model,quantity\nESP32-WROOM-32,3")

        assert result.products[0].model == "ESP32-WROOM-32"


class TestRowProcessing:
    """Test per-row errors, warnings and field mapping."""

    def test_invalid_quantity_is_a_warning(self, parser):
        """Test the two-line example: one product, one warning on row 2."""
        result = parser.parse("part_number,quantity\nSTM32F401,abc")

        assert result.success is True
        assert result.errors == []
        assert len(result.products) == 1
        assert result.products[0].model == "STM32F401"
        assert result.products[0].quantity == 1
        assert len(result.warnings) == 1
        assert result.warnings[0].row == 2
        assert result.warnings[0].kind == "invalid_quantity"

    @pytest.mark.parametrize("quantity", ["0", "-4", "", "1.5", "many"])
    def test_non_positive_or_non_numeric_quantity(self, parser, quantity):
        """Test that every bad quantity defaults to 1 with a warning."""
        result = parser.parse(f"part_number,quantity,notes\nLM317,{quantity},x")

        assert result.products[0].quantity == 1
        assert [w.kind for w in result.warnings] == ["invalid_quantity"]
        assert result.errors == []

    def test_missing_part_number_drops_row(self, parser):
        """Test that a blank part number is a row error."""
        result = parser.parse("part_number,quantity\n,5\nNE555,2")

        assert result.success is False
        assert [p.model for p in result.products] == ["NE555"]
        assert len(result.errors) == 1
        assert result.errors[0].row == 2
        assert result.errors[0].kind == "missing_part_number"

    def test_column_count_mismatch_drops_row(self, parser):
        """Test that a malformed row is never partially emitted."""
        contents = "part_number,quantity,description\nLM7805,10,Regulator, 5V\nLM317,4,Adjustable"
        result = parser.parse(contents)

        assert [p.model for p in result.products] == ["LM317"]
        assert result.errors[0].row == 2
        assert result.errors[0].kind == "column_count_mismatch"

    def test_recognized_columns_and_fallbacks(self, parser):
        """Test field mapping and the pending-confirmation fallback."""
        contents = (
            "part_number,quantity,manufacturer,category,description,remarks\n"
            "STM32F401RET6,25,STMicroelectronics,MCU,ARM Cortex-M4,Need datasheet\n"
            "ESP32,2,,,,"
        )
        result = parser.parse(contents)

        first, second = result.products
        assert first.manufacturer == "STMicroelectronics"
        assert first.brand == "STMicroelectronics"
        assert first.category == "MCU"
        assert first.name == "ARM Cortex-M4"
        assert first.description == "Need datasheet"
        assert first.product_id == "STM32F401RET6"

        assert second.manufacturer == "pending confirmation"
        assert second.brand == "pending confirmation"
        assert second.category == "electronic components"
        assert second.name == "ESP32"
        assert second.description is None

    def test_unknown_columns_become_specifications(self, parser):
        """Test that unrecognized columns are kept verbatim."""
        contents = "part_number,qty,Package,Voltage,Tolerance\nRC0603,100,0603,50V,"
        result = parser.parse(contents)

        assert result.products[0].specifications == {"package": "0603", "voltage": "50V"}

    def test_each_row_gets_id_and_standard_urgency(self, parser):
        """Test generated ids and default urgency."""
        result = parser.parse("part_number,quantity\nA1,1\nA2,2")

        ids = [p.id for p in result.products]
        assert len(set(ids)) == 2
        assert all(p.urgency == Urgency.STANDARD for p in result.products)

    def test_blank_lines_are_ignored_for_row_numbers(self, parser):
        """Test that row numbers count non-empty lines with the header as row 1."""
        result = parser.parse("\npart_number,quantity\n\nA1,x\n\n,3\r\n")

        assert result.warnings[0].row == 2
        assert result.errors[0].row == 3

    def test_custom_delimiter(self, catalog):
        """Test semicolon-separated exports."""
        parser = BOMParser(delimiter=";", catalog=catalog)
        result = parser.parse("part_number;quantity\nBC547;20")

        assert result.products[0].quantity == 20

    def test_delimiter_must_be_single_character(self):
        """Test delimiter validation."""
        with pytest.raises(ValueError):
            BOMParser(delimiter="||")


class TestFileLevelFailures:
    """Test failures that abort the whole import."""

    def test_empty_file(self, parser):
        """Test empty content."""
        result = parser.parse("   \n\n")

        assert result.success is False
        assert result.errors[0].kind == "empty_file"

    def test_header_without_rows(self, parser):
        """Test a header-only file is distinguishable from all rows failing."""
        result = parser.parse("part_number,quantity\n")

        assert result.file_error is True
        assert result.errors[0].kind == "empty_file"

    def test_every_row_invalid_is_not_a_file_error(self, parser):
        """Test that row errors keep their row numbers."""
        result = parser.parse("part_number,quantity\n,1\n,2")

        assert result.file_error is False
        assert [e.row for e in result.errors] == [2, 3]

    def test_invalid_utf8_bytes(self, parser):
        """Test undecodable content."""
        result = parser.parse_bytes(b"\xff\xfe\x00bad")

        assert result.success is False
        assert result.errors[0].kind == "unreadable_file"

    def test_utf8_bom_marker_is_stripped(self, parser):
        """Test Excel-style UTF-8 exports."""
        result = parser.parse_bytes("part_number,quantity\nLM358,2".encode("utf-8-sig"))

        assert result.success is True
        assert result.products[0].model == "LM358"

    def test_internal_failure_is_reported_not_raised(self, parser, monkeypatch):
        """Test that unexpected failures become a single file-level error."""

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(parser.catalog, "from_row", explode)
        result = parser.parse("part_number,quantity\nA1,1")

        assert result.success is False
        assert result.products == []
        assert len(result.errors) == 1
        assert result.errors[0].kind == "parse_failure"


class TestParseFile:
    """Test async file reading."""

    def test_parse_file(self, parser, tmp_path):
        """Test reading and parsing a file from disk."""
        path = tmp_path / "bom.csv"
        path.write_text("part_number,quantity\nSTM32F103C8T6,12\n", encoding="utf-8")

        result = asyncio.run(parser.parse_file(path))

        assert result.success is True
        assert result.products[0].quantity == 12

    def test_missing_file(self, parser, tmp_path):
        """Test that an open failure is a file-level error."""
        result = asyncio.run(parser.parse_file(tmp_path / "missing.csv"))

        assert result.success is False
        assert result.products == []
        assert result.errors[0].kind == "unreadable_file"


class TestDeterminism:
    """Test repeated parsing of identical input."""

    def test_same_issues_and_products(self, catalog):
        """Test that issues and products match across calls apart from ids."""
        contents = "part_number,quantity,color\nA1,abc,red\n,3,blue\nA2,5\nA3,0,green"
        parser = BOMParser(catalog=catalog)

        first = parser.parse(contents)
        second = parser.parse(contents)

        assert [e.to_dict() for e in first.errors] == [e.to_dict() for e in second.errors]
        assert [w.to_dict() for w in first.warnings] == [w.to_dict() for w in second.warnings]
        strip = lambda products: [p.model_dump(exclude={"id"}) for p in products]  # noqa: E731
        assert strip(first.products) == strip(second.products)
        assert first.summary() == {"accepted": 2, "errors": 2, "warnings": 2}
