"""Tests for wosync.lib.dsl module."""

import pytest

from wosync.lib.dsl import (
    LineKind,
    classify_line,
    format_timestamp,
    mark_processed,
    parse_notes,
    parse_notes_file,
    parse_timestamp,
)
from wosync.lib.errors import MisplacedCloseDirective, ParseError


class TestClassifyLine:
    """Each line gets exactly one shape."""

    def test_service_without_noun(self):
        info = classify_line("[Inspect] (2025-03-24 09:00) => checked the pump")
        assert info.kind == LineKind.SERVICE
        assert info.verb == "Inspect"
        assert info.noun is None
        assert info.raw_timestamp == "2025-03-24 09:00"
        assert info.notes == "checked the pump"

    def test_service_with_noun(self):
        info = classify_line("[Repair, Pump] (2025-03-24 10-15) => replaced seal")
        assert info.kind == LineKind.SERVICE_WITH_NOUN
        assert info.verb == "Repair"
        assert info.noun == "Pump"
        assert info.raw_timestamp == "2025-03-24 10-15"

    def test_whitespace_inside_brackets_is_trimmed(self):
        info = classify_line("  [ Repair ,  Valve ]  (2025-03-24 10:15)  =>  notes  ")
        assert info.verb == "Repair"
        assert info.noun == "Valve"
        assert info.notes == "notes"

    def test_processed_line(self):
        info = classify_line("[Inspect] (2025-03-24 09:00) => done ||")
        assert info.kind == LineKind.PROCESSED
        assert info.raw_timestamp == "2025-03-24 09:00"

    def test_import_header(self):
        info = classify_line("--- IMPORTED FROM MM ON 2025-03-24 at 08:50:00 ---")
        assert info.kind == LineKind.IMPORT_HEADER
        assert info.header_date == "2025-03-24"
        assert info.header_time == "08:50:00"

    def test_resume_time(self):
        info = classify_line("START/RESUME TIME: 13:05")
        assert info.kind == LineKind.RESUME_TIME
        assert info.header_time == "13:05"

    def test_free_text_is_other(self):
        assert classify_line("Customer asked about invoice").kind == LineKind.OTHER
        assert classify_line("").kind == LineKind.OTHER
        assert classify_line("[] (2025-03-24 09:00) => empty verb").kind == LineKind.OTHER


class TestParseTimestamp:
    """Timestamp forms accepted by the note format."""

    def test_colon_and_dash_forms_are_equal(self):
        assert parse_timestamp("2025-03-24 09:05") == parse_timestamp("2025-03-24 09-05")

    def test_seconds_accepted(self):
        assert parse_timestamp("2025-03-24 09:05:30").second == 30

    def test_invalid_values(self):
        assert parse_timestamp("2025-13-24 09:05") is None
        assert parse_timestamp("2025-03-24 25:00") is None
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_format_drops_zero_seconds(self):
        assert format_timestamp(parse_timestamp("2025-03-24 09:05")) == "2025-03-24 09:05"
        assert format_timestamp(parse_timestamp("2025-03-24 09:05:30")) == "2025-03-24 09:05:30"


class TestParseNotes:
    """Test parse_notes function."""

    def test_entries_in_file_order(self):
        text = (
            "Some header text\n"
            "[Inspect] (2025-03-24 09:00) => first\n"
            "\n"
            "[Repair, Pump] (2025-03-24 09:20) => second\n"
        )
        result = parse_notes(text)
        assert [e.notes for e in result.entries] == ["first", "second"]
        assert [e.line_number for e in result.entries] == [2, 4]
        assert result.entries[1].noun == "Pump"
        assert result.baseline is None
        assert not result.close_requested

    def test_dash_timestamp_normalized(self):
        result = parse_notes("[Inspect] (2025-03-24 09-05) => x\n")
        assert result.entries[0].timestamp == "2025-03-24 09:05"

    def test_processed_lines_skipped_and_counted(self):
        text = (
            "[Inspect] (2025-03-24 09:00) => old ||\n"
            "[Inspect] (2025-03-24 09:30) => new\n"
        )
        result = parse_notes(text)
        assert len(result.entries) == 1
        assert result.skipped_processed == 1
        assert result.baseline == "2025-03-24 09:00"

    def test_import_header_sets_baseline(self):
        text = (
            "IMPORTED FROM MM ON 2025-03-24 at 08:50:00\n"
            "[Inspect] (2025-03-24 09:00) => x\n"
        )
        assert parse_notes(text).baseline == "2025-03-24 08:50"

    def test_resume_time_uses_import_date(self):
        text = (
            "IMPORTED FROM MM ON 2025-03-24 at 08:50:00\n"
            "START/RESUME TIME: 13:05\n"
            "[Inspect] (2025-03-24 13:30) => x\n"
        )
        assert parse_notes(text).baseline == "2025-03-24 13:05"

    def test_resume_time_without_import_is_ignored(self):
        text = "START/RESUME TIME: 13:05\n[Inspect] (2025-03-24 13:30) => x\n"
        assert parse_notes(text).baseline is None

    def test_last_anchor_wins(self):
        text = (
            "[Inspect] (2025-03-24 09:00) => pushed ||\n"
            "IMPORTED FROM MM ON 2025-03-24 at 10:00\n"
            "[Inspect] (2025-03-24 10:30) => x\n"
        )
        assert parse_notes(text).baseline == "2025-03-24 10:00"

    def test_invalid_import_date_ignored(self):
        text = "IMPORTED FROM MM ON 2025-02-30 at 10:00\n[Inspect] (2025-03-24 10:30) => x\n"
        result = parse_notes(text)
        assert result.baseline is None
        assert len(result.entries) == 1

    def test_malformed_timestamp_dropped(self):
        text = (
            "[Inspect] (2025-03-24 09:00) => good\n"
            "[Inspect] (2025-03-24 9am) => bad\n"
            "[Inspect] (2025-03-24 10:00) => also good\n"
        )
        result = parse_notes(text)
        assert [e.notes for e in result.entries] == ["good", "also good"]
        assert len(result.dropped) == 1
        assert result.dropped[0].line_number == 2
        assert "malformed timestamp" in result.dropped[0].reason

    def test_close_token_on_last_entry(self):
        text = (
            "[Inspect] (2025-03-24 09:00) => first\n"
            "[Close] (2025-03-24 11:00) => all done =|\n"
            "trailing free text\n"
        )
        result = parse_notes(text)
        assert result.close_requested
        assert result.entries[-1].notes == "all done"
        assert not result.entries[0].close_directive

    @pytest.mark.parametrize("position", [0, 1])
    def test_close_token_before_last_entry_rejected(self, position):
        lines = [
            "[Inspect] (2025-03-24 09:00) => a",
            "[Inspect] (2025-03-24 10:00) => b",
            "[Inspect] (2025-03-24 11:00) => c",
        ]
        lines[position] += " =|"
        with pytest.raises(ParseError) as exc:
            parse_notes("\n".join(lines))
        assert isinstance(exc.value, MisplacedCloseDirective)
        assert exc.value.line_number == position + 1

    def test_close_token_mid_notes_before_last_entry_rejected(self):
        text = (
            "[Inspect] (2025-03-24 09:00) => left =| open for now\n"
            "[Inspect] (2025-03-24 10:00) => b\n"
        )
        with pytest.raises(MisplacedCloseDirective) as exc:
            parse_notes(text)
        assert exc.value.line_number == 1

    def test_close_token_mid_notes_on_last_entry_is_text(self):
        result = parse_notes("[Inspect] (2025-03-24 09:00) => a =| b\n")
        assert not result.close_requested
        assert result.entries[0].notes == "a =| b"

    def test_empty_text(self):
        result = parse_notes("")
        assert result.entries == []
        assert result.baseline is None


class TestParseNotesFile:
    """Test parse_notes_file function."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_notes_file(tmp_path / "missing.md")

    def test_reads_file(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("[Inspect] (2025-03-24 09:00) => x\n")
        assert len(parse_notes_file(path).entries) == 1


class TestMarkProcessed:
    """Test mark_processed function."""

    def test_marks_matching_lines(self, tmp_path, resolver):
        path = tmp_path / "notes.md"
        path.write_text(
            "header\n"
            "[Inspect] (2025-03-24 09:00) => a\n"
            "[Repair, Pump] (2025-03-24 09-20) => b\n"
            "[Inspect] (2025-03-24 10:00) => c\n"
        )
        synced = [("2025-03-24 09:00", 12, None), ("2025-03-24 09:20", 30, 401)]
        marked = mark_processed(path, synced, resolver)
        assert marked == 2

        lines = path.read_text().splitlines()
        assert lines[0] == "header"
        assert lines[1].endswith(" ||")
        assert lines[2].endswith(" ||")
        assert not lines[3].endswith("||")
        assert path.read_text().endswith("\n")

    def test_same_minute_sibling_left_unmarked(self, tmp_path, resolver):
        """Only the synced service is marked when two share a timestamp."""
        path = tmp_path / "notes.md"
        path.write_text(
            "[Inspect] (2025-03-24 09:00) => looked at it\n"
            "[Repair, Pump] (2025-03-24 09:00) => replaced seal\n"
        )
        assert mark_processed(path, [("2025-03-24 09:00", 12, None)], resolver) == 1

        lines = path.read_text().splitlines()
        assert lines[0].endswith(" ||")
        assert not lines[1].endswith("||")

        result = parse_notes_file(path)
        assert [(e.verb, e.noun) for e in result.entries] == [("Repair", "Pump")]

    def test_noun_distinguishes_lines(self, tmp_path, resolver):
        path = tmp_path / "notes.md"
        path.write_text(
            "[Repair, Pump] (2025-03-24 09:00) => a\n"
            "[Repair, Valve] (2025-03-24 09:00) => b\n"
        )
        assert mark_processed(path, [("2025-03-24 09:00", 30, 402)], resolver) == 1
        lines = path.read_text().splitlines()
        assert not lines[0].endswith("||")
        assert lines[1].endswith(" ||")

    def test_each_key_marks_one_line(self, tmp_path, resolver):
        path = tmp_path / "notes.md"
        path.write_text(
            "[Inspect] (2025-03-24 09:00) => a\n"
            "[Inspect] (2025-03-24 09:00) => b\n"
        )
        assert mark_processed(path, [("2025-03-24 09:00", 12, None)], resolver) == 1
        assert not path.read_text().splitlines()[1].endswith("||")

    def test_unresolvable_line_not_marked(self, tmp_path, resolver):
        path = tmp_path / "notes.md"
        path.write_text("[Dance] (2025-03-24 09:00) => a\n")
        assert mark_processed(path, [("2025-03-24 09:00", 12, None)], resolver) == 0
        assert path.read_text() == "[Dance] (2025-03-24 09:00) => a\n"

    def test_marked_lines_are_skipped_on_reparse(self, tmp_path, resolver):
        path = tmp_path / "notes.md"
        path.write_text("[Inspect] (2025-03-24 09:00) => a\n[Inspect] (2025-03-24 10:00) => b\n")
        mark_processed(path, [("2025-03-24 09:00", 12, None)], resolver)

        result = parse_notes_file(path)
        assert [e.notes for e in result.entries] == ["b"]
        assert result.baseline == "2025-03-24 09:00"

    def test_already_marked_not_marked_twice(self, tmp_path, resolver):
        path = tmp_path / "notes.md"
        path.write_text("[Inspect] (2025-03-24 09:00) => a ||\n")
        assert mark_processed(path, [("2025-03-24 09:00", 12, None)], resolver) == 0
        assert path.read_text() == "[Inspect] (2025-03-24 09:00) => a ||\n"

    def test_missing_file(self, tmp_path, resolver):
        assert mark_processed(tmp_path / "missing.md", [("2025-03-24 09:00", 12, None)], resolver) == 0
