"""Tests for wosync.lib.workorders module."""

import pytest

from wosync.lib.errors import InvalidWorkOrderNumber
from wosync.lib.workorders import SqliteWorkOrderLookup, validate_work_order_number


class TestValidateWorkOrderNumber:
    """Work order numbers are exactly 7 digits."""

    def test_valid_trimmed(self):
        assert validate_work_order_number(" 1234567 ") == "1234567"

    @pytest.mark.parametrize("value", ["", "123456", "12345678", "12345a7", None])
    def test_invalid(self, value):
        with pytest.raises(InvalidWorkOrderNumber):
            validate_work_order_number(value)


class TestSqliteWorkOrderLookup:
    """Test SqliteWorkOrderLookup against a WOs table."""

    def test_found(self, wo_database):
        record = SqliteWorkOrderLookup(wo_database).get_work_order("1234567")
        assert record.control_number == "20240001"
        assert record.open

    def test_not_found(self, wo_database):
        assert SqliteWorkOrderLookup(wo_database).get_work_order("9999999") is None

    def test_closed_without_control_number(self, wo_database):
        record = SqliteWorkOrderLookup(wo_database).get_work_order("2222222")
        assert record.control_number is None
        assert not record.open

    def test_malformed_control_number_ignored(self, wo_database):
        assert SqliteWorkOrderLookup(wo_database).get_work_order("3333333").control_number is None

    def test_missing_database(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SqliteWorkOrderLookup(tmp_path / "missing.db").get_work_order("1234567")
