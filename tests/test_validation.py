"""Tests for row validation."""

from conftest import make_row, new_item
from schemas.statuses import STATUSES
from services.validation import validate_row, validate_rows


class TestValidateRow:
    """Tests for validate_row."""

    def test_complete_row(self):
        """Test a row with every required value passes without warnings."""
        result = validate_row(new_item(), STATUSES["NEW"])

        assert result.ok
        assert result.warnings == []
        assert result.blocking == []

    def test_missing_required_blocks(self):
        """Test each missing required value is reported."""
        result = validate_row(make_row(name="Motor"), STATUSES["NEW"])

        assert not result.ok
        assert len(result.blocking) == 4
        assert result.blocking[0] == (
            'Cannot submit: one or more items is missing a value for "Supplier". This value is required.'
        )

    def test_whitespace_is_blank(self):
        """Test whitespace-only cells count as missing."""
        result = validate_row(new_item(officer_comments="   "), STATUSES["DENIED"])

        assert not result.ok
        assert '"Financial Officer Comments"' in result.blocking[0]

    def test_single_missing_recommended_warns(self):
        """Test one missing recommended value is enough for a warning."""
        result = validate_row(new_item(account=""), STATUSES["SUBMITTED"])

        assert result.ok
        assert result.warnings == [
            'One or more items is missing a value for "Purchasing Account". Will mark anyway with default value.'
        ]

    def test_zero_is_a_value(self):
        """Test numeric zero is not blank."""
        result = validate_row(new_item(unit_price=0), STATUSES["NEW"])

        assert result.ok


class TestValidateRows:
    """Tests for batch validation."""

    def test_messages_deduplicated(self):
        """Test the same problem on several rows is reported once."""
        rows = [new_item(account=""), new_item(account="")]

        result = validate_rows(rows, STATUSES["SUBMITTED"])

        assert len(result.warnings) == 1

    def test_one_bad_row_blocks_batch(self):
        """Test a single invalid row makes the whole batch invalid."""
        rows = [new_item(), new_item(), new_item(category="")]

        result = validate_rows(rows, STATUSES["NEW"])

        assert not result.ok
        assert '"Category"' in result.blocking[0]

    def test_empty_batch(self):
        """Test an empty batch is valid."""
        assert validate_rows([], STATUSES["NEW"]).ok
