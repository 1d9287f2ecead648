"""
Byte tables per printer family.

Each dialect maps a directive command to either a byte constant or a mapping
from the directive's argument to a byte constant. "feed" maps to a prefix that
is followed by a single count byte; a family without "feed" feeds by repeating
its line terminator. Other commands missing from a table are not supported by
that family.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Union

from escpos.constants import CTL_LF, ESC, GS, HW_INIT, PAPER_FULL_CUT, PAPER_PART_CUT, TXT_STYLE

from posprint.errors import ConfigurationError
from posprint.models import PrinterFamily, PrinterProfile

CommandBytes = Union[bytes, Mapping[object, bytes]]

# ESC t 5 selects code page PC865 (Nordic) so ø/æ/å print as expected.
_ESCPOS_CODEPAGE_NORDIC = ESC + b"t\x05"


@dataclass(frozen=True)
class Dialect:
    family: PrinterFamily
    codec: str
    line_end: bytes
    commands: Mapping[str, CommandBytes] = field(default_factory=dict)
    media_type: str = "application/octet-stream"

    def supports(self, command: str) -> bool:
        return command in self.commands

    def with_cut(self, cut_bytes: bytes) -> Dialect:
        """Copy of this dialect where every cut mode emits cut_bytes."""
        commands = dict(self.commands)
        commands["cut"] = MappingProxyType({"full": cut_bytes, "partial": cut_bytes})
        return replace(self, commands=MappingProxyType(commands))


ESCPOS = Dialect(
    family=PrinterFamily.ESCPOS,
    codec="cp865",
    line_end=CTL_LF,
    commands=MappingProxyType(
        {
            "initialize": HW_INIT + _ESCPOS_CODEPAGE_NORDIC,
            "align": MappingProxyType(dict(TXT_STYLE["align"])),
            "bold": MappingProxyType({True: TXT_STYLE["bold"][True], False: TXT_STYLE["bold"][False]}),
            "feed": ESC + b"d",
            "cut": MappingProxyType({"full": PAPER_FULL_CUT, "partial": PAPER_PART_CUT}),
        }
    ),
)

# Star line mode, as spoken by the TSP100 family.
STAR = Dialect(
    family=PrinterFamily.STAR,
    codec="cp437",
    line_end=b"\n",
    commands=MappingProxyType(
        {
            "initialize": ESC + b"@",
            "align": MappingProxyType(
                {
                    "left": ESC + GS + b"a\x00",
                    "center": ESC + GS + b"a\x01",
                    "right": ESC + GS + b"a\x02",
                }
            ),
            "bold": MappingProxyType({True: ESC + b"E", False: ESC + b"F"}),
            "feed": ESC + b"a",
            "cut": MappingProxyType({"full": ESC + b"d\x02", "partial": ESC + b"d\x03"}),
        }
    ),
)

# Plain text endpoints: no control codes at all.
PLAIN = Dialect(
    family=PrinterFamily.PLAIN,
    codec="utf-8",
    line_end=b"\n",
    commands=MappingProxyType({}),
    media_type="text/plain; charset=utf-8",
)

DIALECTS: Mapping[PrinterFamily, Dialect] = MappingProxyType(
    {
        PrinterFamily.ESCPOS: ESCPOS,
        PrinterFamily.STAR: STAR,
        PrinterFamily.PLAIN: PLAIN,
    }
)


def dialect_for(family: PrinterFamily | str) -> Dialect:
    try:
        return DIALECTS[PrinterFamily(family)]
    except (KeyError, ValueError):
        raise ConfigurationError(f"No dialect registered for printer family {family!r}") from None


def parse_cut_hex(cut_command_hex: str) -> bytes:
    """Turn a stored hex string like "1B6401" or "1b 64 01" into bytes."""
    cleaned = "".join(ch for ch in cut_command_hex if not ch.isspace())
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    if not cleaned:
        raise ConfigurationError("Cut command hex is empty")
    try:
        return binascii.unhexlify(cleaned)
    except (binascii.Error, ValueError):
        raise ConfigurationError(f"Invalid cut command hex {cut_command_hex!r}") from None


def dialect_for_profile(profile: PrinterProfile) -> Dialect:
    dialect = dialect_for(profile.family)
    if profile.cut_command_hex:
        return dialect.with_cut(parse_cut_hex(profile.cut_command_hex))
    return dialect
