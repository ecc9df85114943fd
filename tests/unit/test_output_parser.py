"""Tests for the yt-dlp output parser."""

import pytest

from vidqueue.services.output_parser import (
    OutputParser,
    ParsedUpdate,
    format_duration,
    format_megabytes,
    parse_metadata_json,
    round_percent,
)

METADATA = "Title A\n0:45\n5000000\n720\n"


@pytest.fixture
def parser() -> OutputParser:
    return OutputParser()


class TestProgressLines:
    def test_progress_speed_and_size(self, parser: OutputParser) -> None:
        update = parser.feed("[download]  42.5% of 10MiB at 1.2MiB/s\n")
        assert update.progress == 43
        assert update.download_speed == "1.2MiB/s"
        assert update.file_size == "10MiB"

    def test_unterminated_progress_line_is_parsed(self, parser: OutputParser) -> None:
        update = parser.feed("[download]  42.5% of 10MiB at 1.2MiB/s")
        assert update.progress == 43
        assert update.download_speed == "1.2MiB/s"
        assert update.file_size == "10MiB"

    def test_real_progress_line(self, parser: OutputParser) -> None:
        update = parser.feed("[download]   7.3% of ~  25.41MiB at  512.00KiB/s ETA 00:47 (frag 2/27)\n")
        assert update.progress == 7
        assert update.download_speed == "512.00KiB/s"
        assert update.file_size == "25.41MiB"

    def test_first_match_wins_within_chunk(self, parser: OutputParser) -> None:
        update = parser.feed(
            "[download]  10.0% of 10MiB at 1.0MiB/s\n"
            "[download]  20.0% of 10MiB at 2.0MiB/s\n"
        )
        assert update.progress == 10
        assert update.download_speed == "1.0MiB/s"

    def test_speed_ignored_without_percentage(self, parser: OutputParser) -> None:
        parser.feed(METADATA)
        update = parser.feed("[info] fetched 3.0MiB/s worth of manifests\n")
        assert update.download_speed is None
        assert update.progress is None

    def test_carriage_return_separated_updates(self, parser: OutputParser) -> None:
        update = parser.feed("[download]  50.0% of 4MiB at 1MiB/s\r[download]  60.0% of 4MiB at 1MiB/s\r")
        assert update.progress == 50

    def test_unknown_speed(self, parser: OutputParser) -> None:
        update = parser.feed("[download]  99.9% of 4.00MiB at Unknown B/s ETA Unknown\n")
        assert update.progress == 100
        assert update.download_speed is None

    def test_noise_lines_ignored(self, parser: OutputParser) -> None:
        update = parser.feed("[youtube] Extracting URL: https://youtu.be/x\n[info] x: Downloading 1 format(s): 22\n")
        assert not update


class TestMetadataLines:
    def test_metadata_in_print_order(self, parser: OutputParser) -> None:
        update = parser.feed(METADATA)
        assert update.title == "Title A"
        assert update.duration == "0:45"
        assert update.file_size == "4.8 MB"
        assert update.quality == "720p"

    def test_missing_value_consumes_slot(self, parser: OutputParser) -> None:
        update = parser.feed("Song\n3:10\nNA\nNA\n")
        assert update.title == "Song"
        assert update.duration == "3:10"
        assert update.file_size is None
        assert update.quality is None

    def test_no_metadata_after_slots_filled(self, parser: OutputParser) -> None:
        parser.feed(METADATA)
        update = parser.feed("Deleting original file foo.webm (pass -k to keep)\n")
        assert not update

    def test_title_with_percent_sign(self, parser: OutputParser) -> None:
        update = parser.feed("100% Real Footage\n1:00\nNA\n1080\n")
        assert update.title == "100% Real Footage"
        assert update.progress is None
        assert update.quality == "1080p"

    def test_tool_lines_do_not_consume_slots(self, parser: OutputParser) -> None:
        update = parser.feed("[facebook] 123: Downloading webpage\nClip\n0:12\n")
        assert update.title == "Clip"
        assert update.duration == "0:12"

    def test_bracketed_title_keeps_slot_order(self, parser: OutputParser) -> None:
        update = parser.feed(
            "[4K] Drone Footage\n3:21\n5000000\n1080\n"
            "[download]  10.0% of 10.00MiB at 1.00MiB/s\n"
        )
        assert update.title == "[4K] Drone Footage"
        assert update.duration == "3:21"
        assert update.file_size == "4.8 MB"
        assert update.quality == "1080p"
        assert update.progress == 10

    def test_bracketed_title_with_percent(self, parser: OutputParser) -> None:
        update = parser.feed("[MV] 100% Song\n2:00\nNA\n720\n")
        assert update.title == "[MV] 100% Song"
        assert update.progress is None
        assert update.quality == "720p"

    def test_blank_title_consumes_slot(self, parser: OutputParser) -> None:
        update = parser.feed("\n3:21\n5000000\n1080\n")
        assert update.title is None
        assert update.duration == "3:21"
        assert update.file_size == "4.8 MB"
        assert update.quality == "1080p"

    def test_unparsable_height_yields_nothing(self, parser: OutputParser) -> None:
        update = parser.feed("T\n1:00\n100\naudio only\n")
        assert update.quality is None


class TestChunking:
    def test_line_split_across_chunks(self, parser: OutputParser) -> None:
        first = parser.feed("Long Ti")
        assert first.title is None
        assert parser.pending_fragment == "Long Ti"
        second = parser.feed("tle\n0:30\n")
        assert second.title == "Long Title"
        assert second.duration == "0:30"

    def test_crlf_split_across_chunks(self, parser: OutputParser) -> None:
        parser.feed("Title A\r")
        update = parser.feed("\n0:45\r\n5000000\r\n720\r\n")
        assert update.duration == "0:45"
        assert update.file_size == "4.8 MB"
        assert update.quality == "720p"

    def test_title_split_before_bracket(self, parser: OutputParser) -> None:
        parser.feed("Live ")
        update = parser.feed("[4K] Set\n1:00\n")
        assert update.title == "Live [4K] Set"
        assert update.duration == "1:00"

    def test_fragment_promoted_by_tool_line(self, parser: OutputParser) -> None:
        parser.feed("Title A\n0:45\n5000000\n720")
        update = parser.feed("[download]  10.0% of 4.77MiB at 1.00MiB/s\n")
        assert update.quality == "720p"
        assert update.progress == 10

    def test_flush_parses_trailing_fragment(self, parser: OutputParser) -> None:
        parser.feed("Title A\n0:45\n5000000\n720")
        update = parser.flush()
        assert update.quality == "720p"
        assert parser.pending_fragment == ""

    def test_cut_off_speed_not_taken_as_size(self, parser: OutputParser) -> None:
        parser.feed(METADATA)
        update = parser.feed("[download]  10.0% of Unknown size at 1.2MiB")
        assert update.progress == 10
        assert update.file_size is None


class TestLastKnownGood:
    def test_known_values_are_omitted(self, parser: OutputParser) -> None:
        update = parser.feed(METADATA, known={"title": "Title A", "duration": None})
        assert update.title is None
        assert update.duration == "0:45"

    def test_empty_title_never_reported(self, parser: OutputParser) -> None:
        parser.feed("Title A\n")
        update = parser.feed("\n\n   \n")
        assert update.fields() == {}

    def test_fields_skips_empty(self) -> None:
        update = ParsedUpdate(title="", progress=0, quality=None)
        assert update.fields() == {"progress": 0}


class TestHelpers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(42.5, 43), (42.4, 42), (0.0, 0), (99.5, 100), (120.0, 100)],
    )
    def test_round_percent(self, value: float, expected: int) -> None:
        assert round_percent(value) == expected

    def test_format_megabytes(self) -> None:
        assert format_megabytes(5_000_000) == "4.8 MB"

    def test_format_duration(self) -> None:
        assert format_duration(45) == "0:45"
        assert format_duration(3725) == "1:02:05"


class TestMetadataJson:
    def test_parse_dump(self) -> None:
        update = parse_metadata_json(
            '{"title": "Clip", "duration": 95, "filesize_approx": 2097152, "height": 720}'
        )
        assert update.title == "Clip"
        assert update.duration == "1:35"
        assert update.file_size == "2.0 MB"
        assert update.quality == "720p"

    def test_duration_string_preferred(self) -> None:
        update = parse_metadata_json('{"title": "X", "duration": 95, "duration_string": "1:35"}')
        assert update.duration == "1:35"

    def test_missing_fields(self) -> None:
        update = parse_metadata_json('{"title": "", "height": null}')
        assert update.fields() == {}

    def test_rejects_non_object(self) -> None:
        with pytest.raises(ValueError):
            parse_metadata_json("[1, 2]")
        with pytest.raises(ValueError):
            parse_metadata_json("not json")
