"""
Unit tests for date rendering and column projection.
"""

import pytest

from thehive_mcp.core.errors import ValidationError
from thehive_mcp.shaping import (
    default_columns,
    parse_date_fields,
    parse_date_fields_in_list,
    project,
    render_timestamp,
    shape_entity,
)


class TestRenderTimestamp:
    """Test timestamp rendering."""

    def test_render(self):
        """Test epoch milliseconds render as DD-MM-YYYYTHH:MM:SS in UTC."""
        assert render_timestamp(1705314600000) == "15-01-2024T10:30:00"

    def test_zero_is_empty(self):
        """Test zero renders as an empty string."""
        assert render_timestamp(0) == ""


class TestParseDateFields:
    """Test date field rendering on records."""

    def test_known_fields_rendered(self):
        """Test only known date fields are rendered."""
        entity = {"_id": "~1", "_createdAt": 1705314600000, "severity": 2, "endDate": None}
        shaped = parse_date_fields(entity)
        assert shaped == {"_id": "~1", "_createdAt": "15-01-2024T10:30:00", "severity": 2, "endDate": None}
        assert entity["_createdAt"] == 1705314600000

    def test_non_numeric_date(self):
        """Test a string date field is rejected."""
        with pytest.raises(ValidationError, match="date field startDate is not a number, got str"):
            parse_date_fields({"startDate": "yesterday"})

    def test_bool_date(self):
        """Test a bool date field is rejected."""
        with pytest.raises(ValidationError, match="got bool"):
            parse_date_fields({"dueDate": True})

    def test_list(self):
        """Test lists of records."""
        assert parse_date_fields_in_list([{"date": 0}, {"date": 1705314600000}]) == [
            {"date": ""},
            {"date": "15-01-2024T10:30:00"},
        ]


class TestProjection:
    """Test column projection."""

    def test_project(self):
        """Test missing columns are skipped."""
        assert project({"_id": "~1", "title": "x", "other": 1}, ["_id", "title", "absent"]) == {
            "_id": "~1",
            "title": "x",
        }

    def test_default_columns(self):
        """Test per-entity and per-expansion defaults, with a fallback."""
        assert "number" in default_columns("case")
        assert "message" in default_columns("task-logs")
        assert default_columns("unknown") == ["_id", "title", "url"]

    def test_shape_entity(self):
        """Test a record is date-rendered and projected to defaults."""
        shaped = shape_entity(
            {"_id": "~9", "title": "t", "severity": 3, "_createdAt": 1705314600000, "description": "long"},
            "alert",
        )
        assert shaped == {"_id": "~9", "title": "t", "severity": 3, "_createdAt": "15-01-2024T10:30:00"}

    def test_shape_non_mapping(self):
        """Test non-record values pass through."""
        assert shape_entity(None, "case") is None
        assert shape_entity([{"_id": "~1", "junk": 1}], "case") == [{"_id": "~1"}]
