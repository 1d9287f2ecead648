"""Receipt and kitchen ticket composition."""

from __future__ import annotations

import textwrap
from datetime import datetime, timezone

from posprint.config import CURRENCY_LABEL
from posprint.dialects import Dialect, dialect_for_profile
from posprint.directives import Cut, Directive, FeedLines, Initialize, SetAlignment, SetBold, Text
from posprint.encoder import encode
from posprint.models import (
    ContentType,
    OrderMeta,
    OrderTotals,
    PrintableItem,
    PrinterProfile,
    ReceiptContent,
    SortedPrintSection,
)
from posprint.money import format_minor

_TITLES = {
    ContentType.KITCHEN: "*** KITCHEN ORDER ***",
    ContentType.CUSTOMER: "*** RECEIPT ***",
    ContentType.TEST: "*** PRINTER TEST ***",
}
_DEFAULT_CUSTOMER_FOOTER = "Thank you for your order!"
_INDENT = "   "
_TAIL_FEED_LINES = 3
_TIME_FORMAT = "%Y-%m-%d %H:%M"


def columns(left: str, right: str, width: int) -> list[str]:
    """
    Lay out left text with right text flush to the paper edge.

    Long left text wraps beside the right text. When the right text needs more
    than half the paper, both wrap onto their own lines, right text flush right.
    """
    if not right:
        return textwrap.wrap(left, width=width) or [""]
    if len(left) + 1 + len(right) <= width:
        return [left.ljust(width - len(right)) + right]
    if len(right) > width // 2:
        lines = textwrap.wrap(left, width=width)
        lines += [part.rjust(width) for part in textwrap.wrap(right, width=width)]
        return lines

    left_width = width - len(right) - 1
    wrapped = textwrap.wrap(left, width=left_width) or [""]
    first = wrapped[0].ljust(width - len(right)) + right
    return [first] + wrapped[1:]


class _Composer:
    """Accumulates directives for one profile, honouring its capabilities."""

    def __init__(self, profile: PrinterProfile, dialect: Dialect) -> None:
        self.profile = profile
        self.dialect = dialect
        self.width = profile.paper_width
        self.directives: list[Directive] = []

    def emit(self, directive: Directive) -> None:
        self.directives.append(directive)

    def line(self, text: str = "") -> None:
        self.emit(Text(text))

    def row(self, left: str, right: str = "") -> None:
        for text in columns(left, right, self.width):
            self.line(text)

    def wrapped(self, text: str, indent: str = "") -> None:
        lines = textwrap.wrap(text, width=self.width, initial_indent=indent, subsequent_indent=indent + " ")
        for text_line in lines:
            self.line(text_line)

    def separator(self, char: str = "-") -> None:
        self.line(char * self.width)

    def bold(self, on: bool) -> None:
        if "bold" in self.profile.capabilities:
            self.emit(SetBold(on))

    def align(self, align: str) -> None:
        if "align" in self.profile.capabilities:
            self.emit(SetAlignment(align))

    def start(self) -> None:
        if self.dialect.supports("initialize"):
            self.emit(Initialize())

    def finish(self) -> None:
        self.emit(FeedLines(_TAIL_FEED_LINES))
        if self.profile.supports_cut:
            self.emit(Cut("partial"))


def _header(composer: _Composer, section: SortedPrintSection, order: OrderMeta, content_type: ContentType) -> None:
    composer.align("center")
    if order.company_name:
        composer.bold(True)
        composer.wrapped(order.company_name)
        composer.bold(False)
    composer.line(_TITLES[content_type])
    composer.align("left")

    composer.separator()
    composer.row("Order:", order.reference or order.order_id)
    if order.table_label:
        composer.row("Table:", order.table_label)
    if order.customer_name:
        composer.row("Customer:", order.customer_name)
    if order.placed_at is not None:
        composer.row("Time:", order.placed_at.strftime(_TIME_FORMAT))
    if content_type is ContentType.KITCHEN:
        composer.bold(True)
        composer.row("Station:", section.section_id.upper())
        composer.bold(False)
    composer.separator()


def _item(composer: _Composer, item: PrintableItem, content_type: ContentType, show_prices: bool) -> None:
    kitchen = content_type is ContentType.KITCHEN
    price = format_minor(item.quantity * item.unit_price) if show_prices else ""

    if kitchen:
        composer.bold(True)
    composer.row(f"{item.quantity}x {item.name or ''}", price)
    if kitchen:
        composer.bold(False)

    for modifier in item.modifiers:
        adjustment = ""
        if show_prices and modifier.price_adjustment:
            adjustment = format_minor(item.quantity * modifier.price_adjustment)
        composer.row(f"{_INDENT}+ {modifier.name}", adjustment)

    if kitchen and item.notes:
        composer.wrapped(f"! {item.notes}", indent=_INDENT)


def _body(composer: _Composer, section: SortedPrintSection, content_type: ContentType) -> None:
    kitchen = content_type is ContentType.KITCHEN
    show_prices = not kitchen or composer.profile.prices_on_kitchen
    current_course: int | None = None

    for item in section.items:
        if kitchen and item.course is not None and item.course != current_course:
            current_course = item.course
            composer.bold(True)
            composer.line(f"-- Course {item.course} --")
            composer.bold(False)
        _item(composer, item, content_type, show_prices)


def _totals(composer: _Composer, section: SortedPrintSection, order: OrderMeta, currency: str) -> None:
    totals = order.totals or OrderTotals.from_items(section.items)

    composer.separator()
    composer.row("Subtotal:", format_minor(totals.subtotal))
    if totals.discount:
        composer.row("Discount:", format_minor(-totals.discount))
    composer.row("Tax:", format_minor(totals.tax))
    if totals.tip:
        composer.row("Tip:", format_minor(totals.tip))
    composer.bold(True)
    composer.row("TOTAL:", format_minor(totals.total, currency))
    composer.bold(False)

    for payment in order.payments:
        composer.row(f"Paid ({payment.method}):", format_minor(payment.amount))
        if payment.reference:
            composer.line(f"{_INDENT}Ref: {payment.reference}")


def _footer(composer: _Composer, order: OrderMeta, content_type: ContentType) -> None:
    footer = order.footer_text
    if footer is None and content_type is ContentType.CUSTOMER:
        footer = _DEFAULT_CUSTOMER_FOOTER
    if not footer:
        return
    composer.line()
    composer.align("center")
    composer.wrapped(footer)
    composer.align("left")


def compose_receipt(
    section: SortedPrintSection,
    order: OrderMeta,
    profile: PrinterProfile,
    content_type: ContentType = ContentType.KITCHEN,
    *,
    currency: str = CURRENCY_LABEL,
) -> tuple[Directive, ...]:
    """
    Directive sequence for one section.

    Kitchen tickets never carry a totals block. Missing optional order or item
    fields leave their lines out instead of failing.
    """
    composer = _Composer(profile, dialect_for_profile(profile))
    composer.start()
    _header(composer, section, order, content_type)
    _body(composer, section, content_type)
    if content_type is ContentType.CUSTOMER:
        _totals(composer, section, order, currency)
    _footer(composer, order, content_type)
    composer.finish()
    return tuple(composer.directives)


def encode_receipt(
    directives: tuple[Directive, ...],
    section: SortedPrintSection,
    profile: PrinterProfile,
    content_type: ContentType,
    generated_at: datetime | None = None,
) -> ReceiptContent:
    dialect = dialect_for_profile(profile)
    return ReceiptContent(
        printer_id=profile.printer_id,
        section_id=section.section_id,
        content_type=content_type,
        payload=encode(directives, dialect),
        generated_at=generated_at or datetime.now(timezone.utc),
        media_type=dialect.media_type,
        directives=directives,
    )


def build_receipt(
    section: SortedPrintSection,
    order: OrderMeta,
    profile: PrinterProfile,
    content_type: ContentType = ContentType.KITCHEN,
    *,
    currency: str = CURRENCY_LABEL,
    generated_at: datetime | None = None,
) -> ReceiptContent:
    directives = compose_receipt(section, order, profile, content_type, currency=currency)
    return encode_receipt(directives, section, profile, content_type, generated_at)


def build_test_page(profile: PrinterProfile, now: datetime | None = None) -> ReceiptContent:
    """Short page to check that a printer prints, formats and cuts."""
    now = now or datetime.now(timezone.utc)
    composer = _Composer(profile, dialect_for_profile(profile))
    composer.start()
    composer.align("center")
    composer.bold(True)
    composer.line(_TITLES[ContentType.TEST])
    composer.bold(False)
    composer.align("left")
    composer.separator()
    composer.row("Printer:", profile.label)
    composer.row("Family:", profile.family.value)
    composer.row("Paper width:", str(profile.paper_width))
    composer.row("Time:", now.strftime(_TIME_FORMAT))
    composer.separator()
    composer.wrapped("If you can read this and the paper cuts properly, everything is working as expected.")
    composer.finish()

    section = SortedPrintSection(section_id=profile.printer_id, items=())
    return encode_receipt(tuple(composer.directives), section, profile, ContentType.TEST, now)
