"""
Tests for directive encoding and the per-family dialect table.
"""

import pytest
from escpos.constants import HW_INIT, PAPER_PART_CUT, TXT_STYLE

from posprint.dialects import ESCPOS, STAR, dialect_for, dialect_for_profile, parse_cut_hex
from posprint.directives import Cut, FeedLines, Initialize, SetAlignment, SetBold, Text
from posprint.encoder import encode
from posprint.errors import ConfigurationError, UnsupportedDirective
from posprint.models import PrinterFamily, PrinterProfile


class TestEncode:
    def test_text_gets_line_terminator(self):
        assert encode([Text("Hello")], PrinterFamily.ESCPOS) == b"Hello\n"

    def test_bold_bytes_differ_between_families(self):
        directives = [SetBold(True), Text("X"), SetBold(False)]

        escpos_bytes = encode(directives, PrinterFamily.ESCPOS)
        star_bytes = encode(directives, PrinterFamily.STAR)

        assert escpos_bytes != star_bytes
        assert escpos_bytes.startswith(TXT_STYLE["bold"][True])
        assert star_bytes == b"\x1bEX\n\x1bF"

    def test_family_may_be_given_by_name(self):
        assert encode([Text("a")], "star") == encode([Text("a")], STAR)

    def test_escpos_initialize_selects_nordic_code_page(self):
        assert encode([Initialize()], ESCPOS) == HW_INIT + b"\x1bt\x05"

    def test_escpos_alignment_and_cut(self):
        payload = encode([SetAlignment("center"), Cut("partial")], ESCPOS)
        assert payload == TXT_STYLE["align"]["center"] + PAPER_PART_CUT

    def test_feed_uses_count_byte(self):
        assert encode([FeedLines(3)], ESCPOS) == b"\x1bd\x03"
        assert encode([FeedLines(3)], STAR) == b"\x1ba\x03"

    def test_zero_feed_is_empty(self):
        assert encode([FeedLines(0)], ESCPOS) == b""

    def test_nordic_characters_use_code_page(self):
        assert encode([Text("Smørrebrød")], ESCPOS) == "Smørrebrød".encode("cp865") + b"\n"

    def test_unencodable_characters_become_question_marks(self):
        assert encode([Text("☕")], ESCPOS) == b"?\n"

    def test_encoding_is_pure(self):
        directives = [Initialize(), SetBold(True), Text("Order 17"), SetBold(False), FeedLines(2), Cut("full")]
        assert encode(directives, ESCPOS) == encode(directives, ESCPOS)


class TestPlainFamily:
    def test_plain_feed_repeats_newlines(self):
        assert encode([Text("a"), FeedLines(2)], PrinterFamily.PLAIN) == b"a\n\n\n"

    def test_plain_text_is_utf8(self):
        assert encode([Text("Smørrebrød ☕")], PrinterFamily.PLAIN) == "Smørrebrød ☕\n".encode("utf-8")

    @pytest.mark.parametrize("directive", [SetBold(True), SetAlignment("center"), Cut("full"), Initialize()])
    def test_plain_rejects_control_directives(self, directive):
        with pytest.raises(UnsupportedDirective) as excinfo:
            encode([Text("before"), directive], PrinterFamily.PLAIN)

        assert excinfo.value.directive == directive
        assert excinfo.value.family == "plain"


class TestDialects:
    def test_unknown_family_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            dialect_for("laser")

    def test_parse_cut_hex_accepts_spacing_and_prefix(self):
        assert parse_cut_hex("1B6401") == b"\x1bd\x01"
        assert parse_cut_hex("0x1b 64 01") == b"\x1bd\x01"

    @pytest.mark.parametrize("value", ["", "1B6", "zz"])
    def test_parse_cut_hex_rejects_garbage(self, value):
        with pytest.raises(ConfigurationError):
            parse_cut_hex(value)

    def test_profile_cut_override_replaces_both_cut_modes(self):
        profile = PrinterProfile(printer_id="kitchen", connection_string="10.0.0.5", cut_command_hex="1B6401")
        dialect = dialect_for_profile(profile)

        assert encode([Cut("full")], dialect) == b"\x1bd\x01"
        assert encode([Cut("partial")], dialect) == b"\x1bd\x01"
        # The shared table is untouched.
        assert encode([Cut("partial")], ESCPOS) == PAPER_PART_CUT
