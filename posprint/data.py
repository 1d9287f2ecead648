"""Static sample data for console previews."""

from __future__ import annotations

from datetime import datetime, timezone

from posprint.models import (
    Modifier,
    OrderMeta,
    OrderTotals,
    Payment,
    PrintableItem,
    PrinterProfile,
    SortedPrintSection,
)
from posprint.money import percent_of, to_minor

SAMPLE_VAT_PERCENT = 25

SAMPLE_ITEMS: tuple[PrintableItem, ...] = (
    PrintableItem(
        item_id="sample-1",
        name="Kimchi Ramyun",
        quantity=2,
        unit_price=to_minor("149.00"),
        modifiers=(Modifier("Extra egg", to_minor("15.00")),),
        product_type_id="hot-food",
        course=1,
        notes="One without spring onion",
    ),
    PrintableItem(
        item_id="sample-2",
        name="Bulgogi Gimbap",
        quantity=1,
        unit_price=to_minor("129.00"),
        product_type_id="cold-food",
        course=1,
    ),
    PrintableItem(
        item_id="sample-3",
        name="Hotteok",
        quantity=1,
        unit_price=to_minor("65.00"),
        product_type_id="dessert",
        course=2,
    ),
)


def sample_order(now: datetime | None = None) -> OrderMeta:
    subtotal = sum(item.line_total for item in SAMPLE_ITEMS)
    tax = percent_of(subtotal, SAMPLE_VAT_PERCENT)
    return OrderMeta(
        order_id="sample",
        reference="#042",
        company_name="Sample Kitchen",
        placed_at=now or datetime.now(timezone.utc),
        table_label="Table 7",
        customer_name="Walk-in",
        totals=OrderTotals(subtotal=subtotal, tax=tax),
        payments=(Payment("card", subtotal + tax, reference="AUTH-1234"),),
    )


def sample_section(profile: PrinterProfile) -> SortedPrintSection:
    """All sample items as one section addressed to the given printer."""
    return SortedPrintSection(section_id=profile.printer_id, items=SAMPLE_ITEMS)
