"""Rich text helpers for the printer console."""

from __future__ import annotations

from typing import Iterable

from rich.text import Text

from posprint.directives import Cut, Directive, FeedLines, Initialize, SetAlignment, SetBold
from posprint.directives import Text as TextLine
from posprint.models import DeliveryResult, DeliveryStatus, PrinterFamily, PrinterProfile


def family_badge_style(family: PrinterFamily) -> str:
    """Return a consistent badge style for printer family tags."""
    if family is PrinterFamily.STAR:
        return "bold #ffffff on #2f6db5"
    if family is PrinterFamily.PLAIN:
        return "bold #0b1f0f on #c9c9c9"
    return "bold #0b1f0f on #5fbf72"


def status_badge_style(status: DeliveryStatus | None) -> str:
    if status is DeliveryStatus.DELIVERED:
        return "bold #0b1f0f on #5fbf72"
    if status is DeliveryStatus.UNCONFIRMED:
        return "bold #1f1a0b on #e0b341"
    if status is DeliveryStatus.FAILED:
        return "bold #ffffff on #b23a48"
    return "dim"


def format_printer_label(profile: PrinterProfile) -> Text:
    """Render a printer row with a coloured family tag."""
    text = Text()
    text.append(f" {profile.family.value} ", style=family_badge_style(profile.family))
    text.append(f" {profile.label}")
    text.append(f"  {profile.connection_string}", style="dim")
    if not profile.active:
        text.append("  inactive", style="bold yellow")
    return text


def format_delivery(result: DeliveryResult | None) -> Text:
    """Render a delivery result as a status badge and its description."""
    text = Text()
    if result is None:
        text.append(" idle ", style=status_badge_style(None))
        return text
    text.append(f" {result.status.value} ", style=status_badge_style(result.status))
    text.append(f" {result.describe()}")
    return text


def render_text_preview(directives: Iterable[Directive], width: int) -> Text:
    """Receipt as it would print, one Text line per printed line."""
    text = Text()
    align = "left"
    bold = False
    for directive in directives:
        if isinstance(directive, Initialize):
            align, bold = "left", False
        elif isinstance(directive, SetAlignment):
            align = directive.align
        elif isinstance(directive, SetBold):
            bold = directive.on
        elif isinstance(directive, TextLine):
            value = directive.value[:width]
            if align == "center":
                value = value.center(width)
            elif align == "right":
                value = value.rjust(width)
            text.append(value.rstrip(), style="bold" if bold else "")
            text.append("\n")
        elif isinstance(directive, FeedLines):
            text.append("\n" * directive.count)
        elif isinstance(directive, Cut):
            text.append("- " * (width // 2) + "\n", style="dim")
    return text
