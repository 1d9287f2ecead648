"""Domain models for the print pipeline."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from posprint.directives import Directive
from posprint.errors import ConfigurationError

CAPABILITIES = frozenset({"cut", "bold", "align"})

MIN_PAPER_WIDTH = 16
MAX_PAPER_WIDTH = 80


class PrinterFamily(str, Enum):
    ESCPOS = "escpos"
    STAR = "star"
    PLAIN = "plain"


# Formatting each family's dialect table can encode; a cut_command_hex adds "cut".
FAMILY_CAPABILITIES = {
    PrinterFamily.ESCPOS: CAPABILITIES,
    PrinterFamily.STAR: CAPABILITIES,
    PrinterFamily.PLAIN: frozenset(),
}


class ContentType(str, Enum):
    KITCHEN = "kitchen"
    CUSTOMER = "customer"
    TEST = "test"


class RuleKind(str, Enum):
    OVERRIDE = "override"
    PRODUCT_TYPE = "product_type"
    COURSE = "course"
    ROOM = "room"
    DEFAULT = "default"


class PrintTrigger(str, Enum):
    ORDER_PLACED = "order_placed"
    ORDER_PAID = "order_paid"


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    UNCONFIRMED = "unconfirmed"
    FAILED = "failed"


class FailureReason(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    UNREACHABLE = "unreachable"
    UNEXPECTED_STATUS = "unexpected_status"
    DEVICE_NOT_FOUND = "device_not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class Modifier:
    name: str
    price_adjustment: int = 0


@dataclass(frozen=True)
class PrintableItem:
    """One order line to be printed. Prices are integer minor units."""

    item_id: str
    name: str
    quantity: int = 1
    unit_price: int = 0
    modifiers: tuple[Modifier, ...] = ()
    room_id: str | None = None
    product_type_id: str | None = None
    course: int | None = None
    notes: str | None = None
    product_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.modifiers, tuple):
            object.__setattr__(self, "modifiers", tuple(self.modifiers))

    @property
    def line_total(self) -> int:
        adjustments = sum(modifier.price_adjustment for modifier in self.modifiers)
        return self.quantity * (self.unit_price + adjustments)


@dataclass(frozen=True)
class SortRule:
    """Maps a selection predicate to a target section."""

    rule_id: str
    kind: RuleKind
    target: str
    match: str | None = None
    order: int = 0
    name: str = ""
    active: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.kind, RuleKind):
            object.__setattr__(self, "kind", RuleKind(self.kind))
        if not self.target:
            raise ConfigurationError(f"Sort rule {self.rule_id!r} has no target section")
        if self.kind is not RuleKind.DEFAULT and self.match is None:
            raise ConfigurationError(f"Sort rule {self.rule_id!r} of kind {self.kind.value!r} needs a match value")


@dataclass(frozen=True)
class SortedPrintSection:
    section_id: str
    items: tuple[PrintableItem, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class PrinterProfile:
    """
    Static configuration of one physical printer; printer_id is the section it serves.

    capabilities defaults to everything the family can encode. Listing a
    capability the family cannot encode is a ConfigurationError. An inactive
    printer is never sent anything.
    """

    printer_id: str
    connection_string: str
    family: PrinterFamily = PrinterFamily.ESCPOS
    display_name: str = ""
    paper_width: int = 48
    capabilities: frozenset[str] | None = None
    print_kitchen_receipts: bool = True
    print_customer_receipts: bool = False
    auto_print_on_order: bool = True
    auto_print_on_payment: bool = False
    cut_command_hex: str | None = None
    prices_on_kitchen: bool = True
    active: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.family, PrinterFamily):
            try:
                object.__setattr__(self, "family", PrinterFamily(self.family))
            except ValueError:
                raise ConfigurationError(
                    f"Printer {self.printer_id!r} has unknown family {self.family!r}"
                ) from None

        encodable = FAMILY_CAPABILITIES[self.family]
        if self.cut_command_hex:
            encodable = encodable | {"cut"}
        if self.capabilities is None:
            object.__setattr__(self, "capabilities", encodable)
        elif not isinstance(self.capabilities, frozenset):
            object.__setattr__(self, "capabilities", frozenset(self.capabilities))

        if not self.printer_id:
            raise ConfigurationError("Printer profile needs a printer_id")
        if not self.connection_string or not self.connection_string.strip():
            raise ConfigurationError(f"Printer {self.printer_id!r} has no connection string")
        if not (MIN_PAPER_WIDTH <= self.paper_width <= MAX_PAPER_WIDTH):
            raise ConfigurationError(
                f"Printer {self.printer_id!r} paper width {self.paper_width} is outside "
                f"{MIN_PAPER_WIDTH}..{MAX_PAPER_WIDTH} characters"
            )
        unknown = self.capabilities - CAPABILITIES
        if unknown:
            raise ConfigurationError(f"Printer {self.printer_id!r} lists unknown capabilities {sorted(unknown)}")
        unsupported = self.capabilities - encodable
        if unsupported:
            raise ConfigurationError(
                f"Printer {self.printer_id!r} lists {sorted(unsupported)} but family "
                f"{self.family.value!r} cannot encode them"
            )

    @property
    def label(self) -> str:
        return self.display_name or self.printer_id

    @property
    def supports_cut(self) -> bool:
        return "cut" in self.capabilities

    def accepts(self, content_type: ContentType) -> bool:
        if content_type is ContentType.KITCHEN:
            return self.print_kitchen_receipts
        if content_type is ContentType.CUSTOMER:
            return self.print_customer_receipts
        return True


@dataclass(frozen=True)
class OrderTotals:
    """Order money in integer minor units."""

    subtotal: int
    discount: int = 0
    tax: int = 0
    tip: int = 0

    @property
    def total(self) -> int:
        return self.subtotal - self.discount + self.tax + self.tip

    @classmethod
    def from_items(cls, items: tuple[PrintableItem, ...] | list[PrintableItem], **kwargs: int) -> OrderTotals:
        return cls(subtotal=sum(item.line_total for item in items), **kwargs)


@dataclass(frozen=True)
class Payment:
    method: str
    amount: int
    reference: str | None = None


@dataclass(frozen=True)
class OrderMeta:
    order_id: str
    reference: str = ""
    company_name: str = ""
    placed_at: datetime | None = None
    table_label: str | None = None
    customer_name: str | None = None
    totals: OrderTotals | None = None
    payments: tuple[Payment, ...] = ()
    footer_text: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.payments, tuple):
            object.__setattr__(self, "payments", tuple(self.payments))


@dataclass(frozen=True)
class ReceiptContent:
    """Encoded output for one section, ready for transmission."""

    printer_id: str
    section_id: str
    content_type: ContentType
    payload: bytes
    generated_at: datetime = field(compare=False)
    media_type: str = "application/octet-stream"
    directives: tuple[Directive, ...] = field(default=(), compare=False, repr=False)

    @property
    def content_hash(self) -> str:
        return hashlib.sha256(self.payload).hexdigest()

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class DeliveryResult:
    status: DeliveryStatus
    reason: FailureReason | None = None
    detail: str = ""
    transport: str = ""
    elapsed: float = 0.0

    @classmethod
    def delivered(cls, transport: str, elapsed: float = 0.0, detail: str = "") -> DeliveryResult:
        return cls(DeliveryStatus.DELIVERED, transport=transport, elapsed=elapsed, detail=detail)

    @classmethod
    def unconfirmed(cls, transport: str, elapsed: float = 0.0, detail: str = "") -> DeliveryResult:
        return cls(DeliveryStatus.UNCONFIRMED, transport=transport, elapsed=elapsed, detail=detail)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str = "", transport: str = "", elapsed: float = 0.0) -> DeliveryResult:
        return cls(DeliveryStatus.FAILED, reason=reason, detail=detail, transport=transport, elapsed=elapsed)

    @property
    def ok(self) -> bool:
        """True for delivered and unconfirmed; unconfirmed still means sent, not confirmed."""
        return self.status is not DeliveryStatus.FAILED

    def describe(self) -> str:
        if self.status is DeliveryStatus.DELIVERED:
            return "delivered"
        if self.status is DeliveryStatus.UNCONFIRMED:
            return "sent, not confirmed"
        reason = self.reason.value if self.reason else "unknown"
        return f"failed ({reason}): {self.detail}" if self.detail else f"failed ({reason})"
