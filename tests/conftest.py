"""
Pytest configuration and fixtures for posprint tests.
"""

from datetime import datetime, timezone

import httpx
import pytest

from posprint.config import PrintSettings
from posprint.events import NotificationBus
from posprint.models import (
    Modifier,
    OrderMeta,
    OrderTotals,
    Payment,
    PrintableItem,
    PrinterProfile,
    RuleKind,
    SortedPrintSection,
    SortRule,
)
from posprint.persistence import bootstrap_schema

FIXED_NOW = datetime(2024, 5, 17, 18, 30, tzinfo=timezone.utc)


@pytest.fixture
def items():
    """Three items: one overridden to the bar, one hot food, one with no matching rule."""
    return [
        PrintableItem(item_id="A", name="Negroni", quantity=1, unit_price=9500, room_id="main"),
        PrintableItem(
            item_id="B",
            name="Kimchi Ramyun",
            quantity=2,
            unit_price=14900,
            modifiers=(Modifier("Extra egg", 1500),),
            product_type_id="hot-food",
            room_id="main",
            course=1,
            notes="No spring onion",
        ),
        PrintableItem(item_id="C", name="Side salad", quantity=1, unit_price=4500),
    ]


@pytest.fixture
def rules():
    return [
        SortRule(rule_id="r-default", kind=RuleKind.DEFAULT, target="kitchen", name="Everything else"),
        SortRule(rule_id="r-hot", kind=RuleKind.PRODUCT_TYPE, match="hot-food", target="kitchen", name="Hot food"),
        SortRule(rule_id="r-bar", kind=RuleKind.OVERRIDE, match="A", target="bar", name="Cocktails"),
    ]


@pytest.fixture
def order():
    return OrderMeta(
        order_id="order-1",
        reference="#017",
        company_name="Sample Kitchen",
        placed_at=FIXED_NOW,
        table_label="Table 4",
        customer_name="Ada",
    )


@pytest.fixture
def paid_order(order):
    return OrderMeta(
        order_id=order.order_id,
        reference=order.reference,
        company_name=order.company_name,
        placed_at=order.placed_at,
        table_label=order.table_label,
        totals=OrderTotals(subtotal=5000, discount=1000, tax=250, tip=0),
        payments=(Payment("card", 4250, reference="AUTH-9"),),
    )


@pytest.fixture
def kitchen_profile():
    return PrinterProfile(printer_id="kitchen", connection_string="192.168.1.50", display_name="Kitchen")


@pytest.fixture
def bar_profile():
    return PrinterProfile(printer_id="bar", connection_string="http://192.168.1.51/print", display_name="Bar")


@pytest.fixture
def receipt_profile():
    return PrinterProfile(
        printer_id="front",
        connection_string="http://192.168.1.52/",
        display_name="Front desk",
        print_kitchen_receipts=False,
        print_customer_receipts=True,
        auto_print_on_order=False,
        auto_print_on_payment=True,
    )


@pytest.fixture
def section(items):
    return SortedPrintSection(section_id="kitchen", items=tuple(items[1:]))


@pytest.fixture
def db_path(tmp_path):
    """Fresh SQLite file with the schema in place."""
    path = str(tmp_path / "posprint.db")
    bootstrap_schema(path)
    return path


@pytest.fixture
def settings(db_path):
    return PrintSettings(db_path=db_path, delivery_timeout=2.0)


@pytest.fixture
def bus():
    bus = NotificationBus()
    yield bus
    bus.close()


@pytest.fixture
def make_client():
    """Factory for httpx clients whose requests are answered by handler(request)."""
    clients = []

    def factory(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def recorded_requests():
    return []


@pytest.fixture
def ok_client(make_client, recorded_requests):
    """Printer that answers every request with 200."""

    def handler(request):
        recorded_requests.append(request)
        return httpx.Response(200)

    return make_client(handler)


@pytest.fixture
def now():
    return FIXED_NOW
