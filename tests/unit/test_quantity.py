# ABOUTME: Unit tests for Kubernetes quantity parsing and formatting
# ABOUTME: Tests decimal, binary, and fractional suffixes plus display helpers

import pytest

from clusterpilot_mcp.utils.quantity import format_bytes, format_cores, parse_quantity, percentage


@pytest.mark.unit
class TestParseQuantity:
    """Tests for parse_quantity."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2", 2.0),
            ("250m", 0.25),
            ("1500000n", 0.0015),
            ("1Ki", 1024.0),
            ("512Mi", 512 * 1024**2),
            ("2G", 2e9),
            ("1.5", 1.5),
            (3, 3.0),
            (None, 0.0),
            ("", 0.0),
        ],
    )
    def test_parse(self, value, expected):
        """Test parsing common quantities."""
        assert parse_quantity(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["abc", "12Qi", "1..5"])
    def test_invalid(self, value):
        """Test that malformed quantities raise ValueError."""
        with pytest.raises(ValueError):
            parse_quantity(value)


@pytest.mark.unit
class TestFormatting:
    """Tests for display helpers."""

    def test_format_bytes(self):
        """Test 1024-based byte formatting."""
        assert format_bytes(0) == "0 B"
        assert format_bytes(1536) == "1.50 KB"
        assert format_bytes(8 * 1024**3) == "8.00 GB"

    def test_format_cores(self):
        """Test core formatting."""
        assert format_cores(0.25) == "0.25 cores"

    def test_percentage(self):
        """Test utilization percentages."""
        assert percentage(1, 3) == 33.3
        assert percentage(5, 0) == 0.0
