"""Directive list to printer bytes."""

from __future__ import annotations

from typing import Iterable

from posprint.dialects import Dialect, dialect_for
from posprint.directives import Directive, FeedLines, Text
from posprint.errors import UnsupportedDirective
from posprint.models import PrinterFamily


def encode(directives: Iterable[Directive], target: Dialect | PrinterFamily | str) -> bytes:
    """
    Encode directives for a printer family or an explicit dialect.

    Pure: no I/O and no shared state. A directive the dialect does not define
    raises UnsupportedDirective; nothing is skipped.
    """
    dialect = target if isinstance(target, Dialect) else dialect_for(target)
    out = bytearray()
    for directive in directives:
        out += _encode_one(directive, dialect)
    return bytes(out)


def _encode_one(directive: Directive, dialect: Dialect) -> bytes:
    if isinstance(directive, Text):
        # Characters outside the code page print as "?" rather than failing the ticket.
        return directive.value.encode(dialect.codec, errors="replace") + dialect.line_end

    if isinstance(directive, FeedLines):
        if directive.count == 0:
            return b""
        prefix = dialect.commands.get("feed")
        if prefix is None:
            # Feeding is just blank lines on devices without a feed command.
            return dialect.line_end * directive.count
        if not isinstance(prefix, bytes):
            raise UnsupportedDirective(directive, dialect.family.value)
        return prefix + bytes([directive.count])

    entry = dialect.commands.get(directive.command)
    if entry is None:
        raise UnsupportedDirective(directive, dialect.family.value)
    if isinstance(entry, bytes):
        return entry

    argument = getattr(directive, "argument", None)
    try:
        return entry[argument]
    except KeyError:
        raise UnsupportedDirective(directive, dialect.family.value) from None
