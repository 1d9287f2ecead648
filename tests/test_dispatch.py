"""
Tests for fanning order triggers out into print attempts.
"""

import httpx
import pytest

from posprint import attempt as attempt_module
from posprint import delivery
from posprint.attempt import AttemptState
from posprint.config import PrintSettings
from posprint.directives import SetBold
from posprint.dispatch import plan_jobs, print_order, print_with_stored_config
from posprint.errors import ConfigurationError, UnsupportedDirective
from posprint.models import ContentType, DeliveryStatus, FailureReason, PrinterProfile, PrintTrigger
from posprint.persistence import recent_print_jobs, save_printer_profile, save_sort_rule


@pytest.fixture
def profiles(kitchen_profile, bar_profile, receipt_profile):
    return {p.printer_id: p for p in (kitchen_profile, bar_profile, receipt_profile)}


class TestPlanJobs:
    def test_order_placed_routes_kitchen_tickets(self, items, rules, profiles):
        jobs = plan_jobs(items, rules, profiles, PrintTrigger.ORDER_PLACED)

        assert [(job.profile.printer_id, job.content_type) for job in jobs] == [
            ("bar", ContentType.KITCHEN),
            ("kitchen", ContentType.KITCHEN),
        ]

    def test_order_paid_prints_customer_receipt_with_all_items(self, items, rules, profiles):
        (job,) = plan_jobs(items, rules, profiles, PrintTrigger.ORDER_PAID)

        assert job.profile.printer_id == "front"
        assert job.content_type is ContentType.CUSTOMER
        assert list(job.section.items) == items

    def test_section_without_profile_is_configuration_error(self, items, rules, kitchen_profile):
        with pytest.raises(ConfigurationError) as excinfo:
            plan_jobs(items, rules, [kitchen_profile], PrintTrigger.ORDER_PLACED)

        assert "bar" in str(excinfo.value)

    def test_printer_without_auto_print_is_skipped(self, items, rules, kitchen_profile):
        quiet_bar = PrinterProfile(printer_id="bar", connection_string="10.0.0.7", auto_print_on_order=False)

        jobs = plan_jobs(items, rules, [kitchen_profile, quiet_bar], PrintTrigger.ORDER_PLACED)

        assert [job.profile.printer_id for job in jobs] == ["kitchen"]

    def test_no_items_no_jobs(self, rules, profiles):
        assert plan_jobs([], rules, profiles, PrintTrigger.ORDER_PLACED) == []

    def test_section_routed_to_inactive_printer_is_configuration_error(self, items, rules, kitchen_profile):
        retired_bar = PrinterProfile(printer_id="bar", connection_string="10.0.0.7", active=False)

        with pytest.raises(ConfigurationError) as excinfo:
            plan_jobs(items, rules, [kitchen_profile, retired_bar], PrintTrigger.ORDER_PLACED)

        assert "inactive" in str(excinfo.value)

    def test_inactive_receipt_printer_gets_no_customer_receipt(self, items, rules, receipt_profile):
        retired = PrinterProfile(
            printer_id="front",
            connection_string=receipt_profile.connection_string,
            print_customer_receipts=True,
            auto_print_on_payment=True,
            active=False,
        )

        assert plan_jobs(items, rules, [retired], PrintTrigger.ORDER_PAID) == []


class TestPrintOrder:
    def test_outcomes_notifications_and_job_log(self, order, items, rules, profiles, settings, bus, ok_client):
        received = []
        bus.subscribe(received.append)

        outcomes = print_order(
            order, items, rules, profiles, PrintTrigger.ORDER_PLACED, settings=settings, bus=bus, client=ok_client
        )

        assert [outcome.printer_id for outcome in outcomes] == ["bar", "kitchen"]
        assert all(outcome.state is AttemptState.DELIVERED for outcome in outcomes)
        assert [n.printer_id for n in received] == ["bar", "kitchen"]
        assert all(n.severity == "information" and n.order_id == "order-1" for n in received)

        jobs = recent_print_jobs(db_path=settings.db_path)
        assert {job.printer_id for job in jobs} == {"bar", "kitchen"}
        assert all(job.status == "delivered" and job.order_id == "order-1" for job in jobs)

    def test_failing_printer_does_not_block_others(
        self, order, items, rules, profiles, settings, bus, make_client
    ):
        def handler(request):
            if request.url.host == "192.168.1.51":
                return httpx.Response(503)
            return httpx.Response(202)

        received = []
        bus.subscribe(received.append)

        outcomes = print_order(
            order, items, rules, profiles, settings=settings, bus=bus, client=make_client(handler)
        )

        by_printer = {outcome.printer_id: outcome for outcome in outcomes}
        assert by_printer["bar"].state is AttemptState.FAILED
        assert by_printer["kitchen"].state is AttemptState.UNCONFIRMED
        severities = {n.printer_id: n.severity for n in received}
        assert severities == {"bar": "error", "kitchen": "warning"}
        assert "sent, not confirmed" in [n for n in received if n.printer_id == "kitchen"][0].message

    def test_encoding_error_is_reported_in_its_outcome(
        self, order, items, rules, profiles, settings, bus, ok_client, monkeypatch
    ):
        real_encode = attempt_module.encode_receipt

        def encode_receipt(directives, section, profile, *args):
            if profile.printer_id == "kitchen":
                raise UnsupportedDirective(SetBold(True), "plain")
            return real_encode(directives, section, profile, *args)

        monkeypatch.setattr(attempt_module, "encode_receipt", encode_receipt)
        received = []
        bus.subscribe(received.append)

        outcomes = print_order(order, items, rules, profiles, settings=settings, bus=bus, client=ok_client)

        bar, kitchen = outcomes
        assert bar.ok
        assert isinstance(kitchen.error, UnsupportedDirective)
        assert kitchen.state is AttemptState.ENCODING
        assert kitchen.describe().startswith("not printed:")
        assert received[1].severity == "error"

        (kitchen_job,) = recent_print_jobs(printer_id="kitchen", db_path=settings.db_path)
        assert kitchen_job.state == "encoding"
        assert kitchen_job.status is None

    def test_order_paid(self, paid_order, items, rules, profiles, settings, ok_client, recorded_requests):
        (outcome,) = print_order(
            paid_order, items, rules, profiles, PrintTrigger.ORDER_PAID, settings=settings, client=ok_client
        )

        assert outcome.content_type is ContentType.CUSTOMER
        assert outcome.result.status is DeliveryStatus.DELIVERED
        assert b"TOTAL:" in recorded_requests[0].content

    def test_job_log_can_be_disabled(self, order, items, rules, profiles, db_path, ok_client):
        settings = PrintSettings(db_path=db_path, record_jobs=False)

        print_order(order, items, rules, profiles, settings=settings, client=ok_client)

        assert recent_print_jobs(db_path=db_path) == []

    def test_configuration_errors_raise_before_printing(self, order, items, rules, kitchen_profile, settings, ok_client, recorded_requests):
        with pytest.raises(ConfigurationError):
            print_order(order, items, rules, [kitchen_profile], settings=settings, client=ok_client)

        assert recorded_requests == []

    def test_usb_printer_without_driver_fails_alone(self, order, items, rules, bar_profile, settings, ok_client, monkeypatch):
        class UsbWithoutLibrary:
            def __init__(self, *args, **kwargs):
                pass

            def open(self):
                raise RuntimeError("Printing with USB connection requires a usb library to be installed")

            def close(self):
                pass

        monkeypatch.setattr(delivery, "Usb", UsbWithoutLibrary)
        usb_kitchen = PrinterProfile(printer_id="kitchen", connection_string="usb://28e9:0289")

        bar, kitchen = print_order(order, items, rules, [bar_profile, usb_kitchen], settings=settings, client=ok_client)

        assert bar.state is AttemptState.DELIVERED
        assert kitchen.state is AttemptState.FAILED
        assert kitchen.result.reason is FailureReason.DEVICE_NOT_FOUND

    def test_job_is_logged_before_it_is_announced(self, order, items, rules, profiles, settings, bus, ok_client):
        logged_when_announced = []

        def on_notification(notification):
            jobs = recent_print_jobs(printer_id=notification.printer_id, db_path=settings.db_path)
            logged_when_announced.append(len(jobs))

        bus.subscribe(on_notification)

        print_order(order, items, rules, profiles, settings=settings, bus=bus, client=ok_client)

        assert logged_when_announced == [1, 1]

    def test_closed_bus_does_not_stop_the_job_log(self, order, items, rules, profiles, settings, bus, ok_client):
        bus.close()

        outcomes = print_order(order, items, rules, profiles, settings=settings, bus=bus, client=ok_client)

        assert all(outcome.ok for outcome in outcomes)
        assert len(recent_print_jobs(db_path=settings.db_path)) == 2


class TestPrintWithStoredConfig:
    def test_reads_rules_and_profiles_from_store(self, order, items, rules, profiles, settings, ok_client):
        for rule in rules:
            save_sort_rule(rule, db_path=settings.db_path)
        for profile in profiles.values():
            save_printer_profile(profile, db_path=settings.db_path)

        outcomes = print_with_stored_config(order, items, settings=settings, client=ok_client)

        assert [outcome.printer_id for outcome in outcomes] == ["bar", "kitchen"]
        assert all(outcome.ok for outcome in outcomes)
