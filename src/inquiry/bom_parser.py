"""
BOM (bill of materials) import for inquiry drafts.

Parses delimited text exported from CSV/Excel into InquiryProducts. Identity
problems (missing part number, malformed row) drop the row with an error;
quantity problems keep the row with a warning and a quantity of 1. The
parser never raises: file-level failures come back as a single row-0 error.

Fields are split on a single delimiter character. Quoted fields are not
supported, so a value containing the delimiter mis-splits and is reported
as a column count mismatch.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .catalog import InquiryProductCatalog
from .models import BOMParseResult, RowIssue

logger = logging.getLogger(__name__)

# Canonical field -> accepted header synonyms, in priority order
COLUMN_SCHEMA: Dict[str, Tuple[str, ...]] = {
    "part_number": ("part_number", "partnumber", "model"),
    "quantity": ("quantity", "qty"),
    "manufacturer": ("manufacturer", "brand"),
    "category": ("category",),
    "name": ("description", "name"),
    "notes": ("remarks", "notes"),
}

REQUIRED_FIELDS = ("part_number", "quantity")

RECOGNIZED_HEADERS = frozenset(h for synonyms in COLUMN_SCHEMA.values() for h in synonyms)


def resolve_columns(headers: List[str]) -> Dict[str, List[int]]:
    """Map each canonical field to the indexes of its matching headers, best first."""
    resolved: Dict[str, List[int]] = {}
    for field_name, synonyms in COLUMN_SCHEMA.items():
        indexes = [headers.index(s) for s in synonyms if s in headers]
        if indexes:
            resolved[field_name] = indexes
    return resolved


class BOMParser:
    """Parses tabular BOM files into a BOMParseResult."""

    def __init__(
        self,
        delimiter: str = ",",
        catalog: Optional[InquiryProductCatalog] = None,
    ):
        if len(delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        self.delimiter = delimiter
        self.catalog = catalog or InquiryProductCatalog()

    def parse(self, file_contents: str) -> BOMParseResult:
        """Parse delimited text.

        Args:
            file_contents: Decoded file text; the first non-empty line is the header

        Returns:
            BOMParseResult; success is True iff no row or file error was recorded
        """
        try:
            return self._parse(file_contents)
        except Exception as e:
            logger.error(f"Unexpected error parsing BOM file: {str(e)}")
            return BOMParseResult.file_failure("Failed to parse file", "parse_failure")

    def parse_bytes(self, data: bytes) -> BOMParseResult:
        """Decode UTF-8 (with or without BOM marker) and parse."""
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            logger.warning(f"BOM file is not valid UTF-8: {str(e)}")
            return BOMParseResult.file_failure("Failed to read file", "unreadable_file")
        return self.parse(text)

    async def parse_file(self, path: Union[str, Path]) -> BOMParseResult:
        """Read a file without blocking the event loop, then parse it."""
        try:
            data = await asyncio.to_thread(Path(path).read_bytes)
        except OSError as e:
            logger.warning(f"Could not read BOM file {path}: {str(e)}")
            return BOMParseResult.file_failure("Failed to read file", "unreadable_file")
        return self.parse_bytes(data)

    def _split(self, line: str) -> List[str]:
        return [value.strip() for value in line.split(self.delimiter)]

    def _parse(self, file_contents: str) -> BOMParseResult:
        lines = [line for line in (file_contents or "").splitlines() if line.strip()]

        if not lines:
            return BOMParseResult.file_failure("File is empty", "empty_file")

        headers = [h.lower() for h in self._split(lines[0])]
        columns = resolve_columns(headers)

        missing = [name for name in REQUIRED_FIELDS if name not in columns]
        if missing:
            return BOMParseResult.file_failure(
                f"Missing required columns: {', '.join(missing)}", "missing_columns"
            )

        if len(lines) < 2:
            return BOMParseResult.file_failure(
                "File needs a header row and at least one data row", "empty_file"
            )

        result = BOMParseResult(success=False)

        for index, line in enumerate(lines[1:], start=1):
            row = index + 1
            values = self._split(line)

            if len(values) != len(headers):
                result.errors.append(
                    RowIssue(
                        row=row,
                        message=(
                            f"Column count mismatch: expected {len(headers)}, got {len(values)}"
                        ),
                        kind="column_count_mismatch",
                    )
                )
                continue

            part_number = self._first_value(values, columns.get("part_number"))
            if not part_number:
                result.errors.append(
                    RowIssue(
                        row=row,
                        message="Missing part number",
                        kind="missing_part_number",
                        column="part_number",
                    )
                )
                continue

            raw_quantity = self._first_value(values, columns.get("quantity"))
            quantity = self._parse_quantity(raw_quantity)
            if quantity is None:
                result.warnings.append(
                    RowIssue(
                        row=row,
                        message="Invalid quantity, defaulted to 1",
                        kind="invalid_quantity",
                        column="quantity",
                    )
                )
                quantity = 1

            specifications = {
                header: value
                for header, value in zip(headers, values)
                if header not in RECOGNIZED_HEADERS and value
            }

            result.products.append(
                self.catalog.from_row(
                    part_number=part_number,
                    quantity=quantity,
                    manufacturer=self._first_value(values, columns.get("manufacturer")),
                    category=self._first_value(values, columns.get("category")),
                    name=self._first_value(values, columns.get("name")),
                    notes=self._first_value(values, columns.get("notes")),
                    specifications=specifications,
                )
            )

        result.success = not result.errors
        logger.info(
            f"Parsed BOM: {len(result.products)} products, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    @staticmethod
    def _first_value(values: List[str], indexes: Optional[List[int]]) -> str:
        for i in indexes or []:
            if values[i]:
                return values[i]
        return ""

    @staticmethod
    def _parse_quantity(raw: str) -> Optional[int]:
        try:
            quantity = int(raw)
        except (TypeError, ValueError):
            return None
        return quantity if quantity > 0 else None
