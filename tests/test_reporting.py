"""Tests for terminal report rendering."""

import copy
from io import StringIO

import pytest
from rich.console import Console

from library_audit.models import CompletionMetric, IncompleteDLC, IncompleteUpdate, MissingDLC
from library_audit.ui.console import ALL_DLC_MESSAGE, UP_TO_DATE_MESSAGE, ConsoleReporter


def make_reporter() -> tuple[ConsoleReporter, StringIO]:
    output = StringIO()
    console = Console(file=output, width=200, color_system=None, force_terminal=False)
    return ConsoleReporter(console=console), output


UPDATES = [
    IncompleteUpdate("0100000000010000", "Alpha Quest", 65536, 196608, "2020-03-01"),
    IncompleteUpdate("0100000000020000", "Beta Racer", 0, 65536, "2021-07-04"),
]

DLC = [
    IncompleteDLC(
        "0100000000010000",
        "Alpha Quest",
        (MissingDLC("0100000000011001", "Extra Map"), MissingDLC("0100000000011002")),
    ),
]


def test_update_table_rows_and_total() -> None:
    reporter, output = make_reporter()

    reporter.missing_updates(UPDATES)

    text = output.getvalue()
    assert "Found available updates" in text
    for header in ("Title", "TitleId", "Local version", "Latest Version", "Update Date"):
        assert header in text
    assert "Alpha Quest" in text and "196608" in text and "2020-03-01" in text
    assert "Beta Racer" in text and "2021-07-04" in text
    assert "Total" in text
    assert UP_TO_DATE_MESSAGE not in text


def test_update_rows_use_dense_zero_based_index() -> None:
    reporter, output = make_reporter()

    reporter.missing_updates(UPDATES)

    lines = [line for line in output.getvalue().splitlines() if "0100000000" in line]
    assert len(lines) == 2
    assert lines[0].split()[1] == "0"
    assert lines[1].split()[1] == "1"


def test_empty_update_result_prints_single_line() -> None:
    reporter, output = make_reporter()

    reporter.missing_updates([])

    text = output.getvalue()
    assert UP_TO_DATE_MESSAGE in text
    assert "Total" not in text
    assert "TitleId" not in text


def test_dlc_table_lists_missing_entries() -> None:
    reporter, output = make_reporter()

    reporter.missing_dlc(DLC)

    text = output.getvalue()
    assert "Found missing DLCS" in text
    assert "Missing DLCs (titleId - Name)" in text
    assert "0100000000011001 - Extra Map" in text
    assert "0100000000011002" in text
    assert "Total" in text


def test_empty_dlc_result_prints_single_line() -> None:
    reporter, output = make_reporter()

    reporter.missing_dlc([])

    assert ALL_DLC_MESSAGE in output.getvalue()
    assert "Total" not in output.getvalue()


def test_rendering_does_not_mutate_records() -> None:
    reporter, _ = make_reporter()
    updates_before = copy.deepcopy(UPDATES)
    dlc_before = copy.deepcopy(DLC)

    reporter.missing_updates(UPDATES)
    reporter.missing_dlc(DLC)

    assert UPDATES == updates_before
    assert DLC == dlc_before


def test_completion_line() -> None:
    reporter, output = make_reporter()

    reporter.completion(CompletionMetric(owned=1, total=2, local_titles=3))

    text = output.getvalue()
    assert "Local library completion status: 50.00% (have 1 titles, out of 2 titles)" in text
    assert "2 local titles were not found in the catalog" in text


def test_stage_spinner_is_released_on_error() -> None:
    reporter, output = make_reporter()

    with pytest.raises(RuntimeError):
        with reporter.stage("Scanning folder"):
            assert reporter.active_stage == "Scanning folder"
            raise RuntimeError("boom")

    assert reporter.active_stage is None
    assert "Scanning folder" in output.getvalue()


def test_warning_is_visible() -> None:
    reporter, output = make_reporter()

    reporter.warning("keys missing")

    assert "!!NOTE!!" in output.getvalue()
    assert "keys missing" in output.getvalue()
