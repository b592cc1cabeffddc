"""Unit tests for console formatting helpers."""

import pytest
from depedit.utils.formatting import (
    create_settings_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)


class TestPrintHelpers:
    """Tests for the message print helpers."""

    def test_info_and_success_go_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Info and success messages are written to stdout."""
        print_info("Adding log v0.4")
        print_success("Settings written")

        captured = capsys.readouterr()
        assert "Adding log v0.4" in captured.out
        assert "Settings written" in captured.out
        assert captured.err == ""

    def test_warning_and_error_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Warnings and errors are prefixed and written to stderr."""
        print_warning("Unrecognized feature `x`")
        print_error("Manifest not found")

        captured = capsys.readouterr()
        assert "Warning: Unrecognized feature `x`" in captured.err
        assert "Error: Manifest not found" in captured.err
        assert captured.out == ""


class TestSettingsTable:
    """Tests for create_settings_table."""

    def test_columns(self) -> None:
        """The table has a setting and a value column."""
        table = create_settings_table(title="Settings (test)")

        assert table.title == "Settings (test)"
        assert [column.header for column in table.columns] == ["Setting", "Value"]
