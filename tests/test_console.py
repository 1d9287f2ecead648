"""
Tests for the Textual printer console, driven through Textual's test pilot.
"""

import asyncio

from posprint.console import PrinterConsoleApp
from posprint.events import Notification
from posprint.models import ContentType, DeliveryStatus, PrinterProfile
from posprint.persistence import recent_print_jobs, save_printer_profile


def _run(coro):
    return asyncio.run(coro)


class TestPrinterConsole:
    def test_lists_saved_printers(self, settings, bus, kitchen_profile, bar_profile):
        save_printer_profile(kitchen_profile, db_path=settings.db_path)
        save_printer_profile(bar_profile, db_path=settings.db_path)

        async def scenario():
            app = PrinterConsoleApp(settings=settings, bus=bus)
            async with app.run_test() as pilot:
                assert [p.printer_id for p in app.profiles] == ["bar", "kitchen"]
                await pilot.press("j")
                assert app.selected_profile().printer_id == "kitchen"
                await pilot.press("k")
                assert app.selected_profile().printer_id == "bar"
                await pilot.press("c")
                assert app.preview_type is ContentType.CUSTOMER

        _run(scenario())

    def test_send_test_page(self, settings, bus, kitchen_profile, ok_client, recorded_requests):
        save_printer_profile(kitchen_profile, db_path=settings.db_path)

        async def scenario():
            app = PrinterConsoleApp(settings=settings, bus=bus, client=ok_client)
            async with app.run_test() as pilot:
                await pilot.press("t")
                await app.workers.wait_for_complete()
                await pilot.pause()

                assert app.last_results["kitchen"].status is DeliveryStatus.DELIVERED
                assert "Test page on Kitchen: delivered" in app.system_status

        _run(scenario())

        assert b"PRINTER TEST" in recorded_requests[0].content
        (job,) = recent_print_jobs(db_path=settings.db_path)
        assert job.content_type == "test"
        assert job.status == "delivered"

    def test_test_page_that_cannot_be_built_is_reported(self, settings, bus, ok_client, recorded_requests):
        broken = PrinterProfile(printer_id="kitchen", connection_string="10.0.0.5", cut_command_hex="not-hex")
        save_printer_profile(broken, db_path=settings.db_path)

        async def scenario():
            app = PrinterConsoleApp(settings=settings, bus=bus, client=ok_client)
            async with app.run_test() as pilot:
                await pilot.press("t")
                await app.workers.wait_for_complete()
                await pilot.pause()

                assert app.is_running
                assert "Test page for kitchen not sent" in app.system_status

        _run(scenario())

        assert recorded_requests == []

    def test_bus_notifications_reach_status_bar(self, settings, bus):
        async def scenario():
            app = PrinterConsoleApp(settings=settings, bus=bus)
            async with app.run_test() as pilot:
                bus.publish(Notification("Bar printer offline", "error", printer_id="bar"))
                await pilot.pause()
                assert app.system_status == "Bar printer offline"

        _run(scenario())

    def test_unmount_leaves_injected_bus_open(self, settings, bus):
        async def scenario():
            app = PrinterConsoleApp(settings=settings, bus=bus)
            async with app.run_test():
                pass

        _run(scenario())

        assert not bus.closed
        assert bus.publish(Notification("after exit")) == 0
