"""
Tests for the command protocol codec.

Tests cover:
- Decoding of every request form
- Malformed requests and their ERROR reasons
- Request builders used by the Remote
- GET_STATE reply formatting and strict parsing
"""

from __future__ import annotations

import pytest

from radiolink.protocol.commands import (
    ERROR_INVALID_PARTS,
    ERROR_INVALID_STATION_INDEX,
    ERROR_UNKNOWN_COMMAND,
    Command,
    CommandType,
    PlayerStateSnapshot,
    ProtocolError,
    build_select_station,
    build_testurl,
    format_error,
    format_state,
    is_error,
    parse_command,
    parse_state_response,
)


class TestParseCommand:
    """Tests for request decoding."""

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("PING", CommandType.PING),
            ("MUTE", CommandType.MUTE),
            ("UNMUTE", CommandType.UNMUTE),
            ("GET_STATE", CommandType.GET_STATE),
        ],
    )
    def test_bare_commands(self, line: str, expected: CommandType) -> None:
        """Commands without fields decode to their type."""
        assert parse_command(line) == Command(expected)

    def test_trailing_line_break_is_ignored(self) -> None:
        assert parse_command("PING\r\n").type is CommandType.PING

    def test_select_station(self) -> None:
        command = parse_command("SELECT_STATION|2")
        assert command.type is CommandType.SELECT_STATION
        assert command.station_index == 2

    def test_select_station_negative_index_is_decoded(self) -> None:
        """Range checks belong to the playback owner, not the codec."""
        assert parse_command("SELECT_STATION|-1").station_index == -1

    @pytest.mark.parametrize(
        "line",
        ["SELECT_STATION|abc", "SELECT_STATION|", "SELECT_STATION|1|2", "SELECT_STATION|1.5"],
    )
    def test_select_station_bad_index(self, line: str) -> None:
        with pytest.raises(ProtocolError) as exc_info:
            parse_command(line)
        assert exc_info.value.reason == ERROR_INVALID_STATION_INDEX

    def test_testurl(self) -> None:
        command = parse_command("TESTURL|http://example.com/a.pls")
        assert command.type is CommandType.TESTURL
        assert command.url == "http://example.com/a.pls"

    def test_testurl_with_extra_separator(self) -> None:
        with pytest.raises(ProtocolError) as exc_info:
            parse_command("TESTURL|http://a|b")
        assert exc_info.value.reason == ERROR_INVALID_PARTS

    @pytest.mark.parametrize(
        "line",
        ["ping", "HELLO", "PING|x", "SELECT_STATION", "MUTE ", "", "TESTURL"],
    )
    def test_unknown_command(self, line: str) -> None:
        """Matching is exact and case-sensitive."""
        with pytest.raises(ProtocolError) as exc_info:
            parse_command(line)
        assert exc_info.value.reason == ERROR_UNKNOWN_COMMAND


class TestBuilders:
    """Tests for request builders."""

    def test_build_select_station(self) -> None:
        assert build_select_station(3) == "SELECT_STATION|3"

    def test_build_testurl(self) -> None:
        assert build_testurl("http://x/y.m3u") == "TESTURL|http://x/y.m3u"

    @pytest.mark.parametrize("url", ["http://a|b", "http://a\nPING", "http://a\r"])
    def test_build_testurl_rejects_unsendable_urls(self, url: str) -> None:
        with pytest.raises(ValueError):
            build_testurl(url)

    def test_encode_decode_select_station(self) -> None:
        command = Command(CommandType.SELECT_STATION, station_index=7)
        assert parse_command(command.encode()) == command


class TestReplies:
    """Tests for reply helpers."""

    def test_format_state(self) -> None:
        assert format_state(1, False) == "STATE:1:PLAYING"
        assert format_state(0, True) == "STATE:0:MUTED"

    def test_format_error_flattens_line_breaks(self) -> None:
        assert format_error("bad\nthing") == "ERROR:bad thing"

    def test_is_error(self) -> None:
        assert is_error("ERROR:Unknown command")
        assert is_error(None)
        assert not is_error("OK")
        assert not is_error("STATE:0:MUTED")


class TestParseStateResponse:
    """Tests for strict GET_STATE reply parsing."""

    def test_playing(self) -> None:
        assert parse_state_response("STATE:2:PLAYING") == PlayerStateSnapshot(2, False)

    def test_muted(self) -> None:
        assert parse_state_response("STATE:0:MUTED") == PlayerStateSnapshot(0, True)

    @pytest.mark.parametrize(
        "response",
        [
            None,
            "",
            "ERROR:No state handler",
            "ERROR:Connection timeout",
            "STATE:x:PLAYING",
            "STATE:1",
            "STATE:1:PAUSED",
            "STATE:1:PLAYING:extra",
            "OK",
        ],
    )
    def test_malformed_gives_none(self, response: str | None) -> None:
        assert parse_state_response(response) is None
