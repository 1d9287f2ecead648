"""Textual printer console: list printers, preview tickets, send test pages."""

from __future__ import annotations

import sqlite3
import threading
from functools import partial
from pathlib import Path

import httpx
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.widgets import Header, Static

from posprint.attempt import AttemptOutcome, AttemptState
from posprint.builder import build_test_page, compose_receipt
from posprint.config import PREVIEW_DIR, PrintSettings
from posprint.data import sample_order, sample_section
from posprint.delivery import attempt_delivery
from posprint.errors import PrintError
from posprint.events import Notification, NotificationBus
from posprint.log import get_logger
from posprint.models import ContentType, DeliveryResult, DeliveryStatus, PrinterProfile
from posprint.persistence import bootstrap_schema, load_printer_profiles, recent_print_jobs, record_print_job
from posprint.preview import check_preview_dependencies, save_preview
from posprint.rendering import format_delivery, format_printer_label, render_text_preview, status_badge_style

logger = get_logger(__name__)

_RECENT_JOB_ROWS = 8
_SEVERITY_FOR_STATUS = {
    DeliveryStatus.DELIVERED: "information",
    DeliveryStatus.UNCONFIRMED: "warning",
    DeliveryStatus.FAILED: "error",
}


class PrinterConsoleApp(App):
    """A Textual app for checking the configured kitchen and receipt printers."""

    TITLE = "Printer Console"
    SUB_TITLE = "posprint"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #printers-pane {
        width: 2fr;
        border: round $primary;
        padding: 1;
    }

    #preview-pane {
        width: 3fr;
        border: round $secondary;
        padding: 1;
    }

    #printers-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #jobs-list {
        height: auto;
        max-height: 10;
        border: tall $surface;
        padding: 0 1;
    }

    #preview {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
        overflow-y: auto;
    }

    #status-bar {
        border: heavy $secondary;
        padding: 0 1;
        height: 4;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    selected_index = reactive(0)
    preview_type = reactive(ContentType.KITCHEN)

    BINDINGS = [
        ("up", "move_selection(-1)", "Previous printer"),
        ("down", "move_selection(1)", "Next printer"),
        Binding("ctrl+r", "reload", "Reload printers", priority=True),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        settings: PrintSettings | None = None,
        bus: NotificationBus | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings or PrintSettings()
        self._owns_bus = bus is None
        self.bus = bus or NotificationBus()
        self.client = client
        self.profiles: list[PrinterProfile] = []
        self.last_results: dict[str, DeliveryResult] = {}
        self.system_status = ""
        self._unsubscribe = None
        self._ui_thread_id: int | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="printers-pane"):
                yield Static("Printers", classes="pane-title")
                yield Static("(no printers configured)", id="printers-list")
                yield Static("Recent jobs", classes="pane-title")
                yield Static("(no jobs yet)", id="jobs-list")
            with Vertical(id="preview-pane"):
                yield Static("Preview", classes="pane-title")
                yield Static(id="preview")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        self._ui_thread_id = threading.get_ident()
        bootstrap_schema(self.settings.db_path)
        self._unsubscribe = self.bus.subscribe(self._on_notification)
        _, msg = check_preview_dependencies(self.settings.font_path)
        self.system_status = msg
        self._reload_printers()

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        if self._owns_bus:
            self.bus.close()

    def on_key(self, event: Key) -> None:
        if not event.is_printable or event.character is None or len(event.character) != 1:
            return

        key = event.character.lower()
        if key == "j":
            self.action_move_selection(1)
        elif key == "k":
            self.action_move_selection(-1)
        elif key == "t":
            self.action_send_test_page()
        elif key == "p":
            self.action_preview(ContentType.KITCHEN.value)
        elif key == "c":
            self.action_preview(ContentType.CUSTOMER.value)
        elif key == "s":
            self.action_save_preview()
        elif key == "r":
            self.action_reload()
        else:
            return
        event.stop()

    def action_move_selection(self, delta: int) -> None:
        if not self.profiles:
            return
        self.selected_index = (self.selected_index + delta) % len(self.profiles)
        self._refresh_all()

    def action_reload(self) -> None:
        self._reload_printers()

    def action_preview(self, content_type: str) -> None:
        self.preview_type = ContentType(content_type)
        self._refresh_preview()

    def action_save_preview(self) -> None:
        profile = self.selected_profile()
        if profile is None:
            self._set_status("No printer selected")
            return
        directives = self._preview_directives(profile)
        target = Path(PREVIEW_DIR) / f"{profile.printer_id}-{self.preview_type.value}.png"
        try:
            saved = save_preview(directives, target, font_path=self.settings.font_path)
        except (PrintError, OSError) as exc:
            logger.warning("Preview not saved", printer_id=profile.printer_id, error=str(exc))
            self._set_status(f"Preview not saved: {exc}")
            return
        self._set_status(f"Preview saved to {saved}")

    def action_send_test_page(self) -> None:
        profile = self.selected_profile()
        if profile is None:
            self._set_status("No printer selected")
            return
        self._set_status(f"Sending test page to {profile.label}...")
        self.run_worker(partial(self._send_test_page, profile), thread=True, group="test-page")

    def selected_profile(self) -> PrinterProfile | None:
        if not (0 <= self.selected_index < len(self.profiles)):
            return None
        return self.profiles[self.selected_index]

    def _send_test_page(self, profile: PrinterProfile) -> None:
        """Runs in a worker thread."""
        try:
            content = build_test_page(profile)
            result = attempt_delivery(content, profile.connection_string, self.settings.delivery_timeout, client=self.client)
        except PrintError as exc:
            logger.error("Test page not sent", printer_id=profile.printer_id, error=str(exc))
            self.bus.publish(
                Notification(f"Test page for {profile.label} not sent: {exc}", "error", printer_id=profile.printer_id)
            )
            return

        if self.settings.record_jobs:
            outcome = AttemptOutcome(
                printer_id=profile.printer_id,
                section_id=content.section_id,
                content_type=ContentType.TEST,
                state=AttemptState(result.status.value),
                result=result,
                content=content,
            )
            try:
                record_print_job(outcome, db_path=self.settings.db_path)
            except sqlite3.Error:
                logger.error("Could not record test page", exc_info=True, printer_id=profile.printer_id)

        self.call_from_thread(self._record_result, profile.printer_id, result)
        self.bus.publish(
            Notification(
                f"Test page on {profile.label}: {result.describe()}",
                _SEVERITY_FOR_STATUS[result.status],
                printer_id=profile.printer_id,
            )
        )

    def _on_notification(self, notification: Notification) -> None:
        if threading.get_ident() == self._ui_thread_id:
            self._show_notification(notification)
        else:
            self.call_from_thread(self._show_notification, notification)

    def _show_notification(self, notification: Notification) -> None:
        self.notify(notification.message, severity=notification.severity)
        self._set_status(notification.message)

    def _record_result(self, printer_id: str, result: DeliveryResult) -> None:
        self.last_results[printer_id] = result
        self._refresh_printers()
        self._refresh_jobs()

    def _reload_printers(self) -> None:
        try:
            profiles = load_printer_profiles(self.settings.db_path)
        except PrintError as exc:
            logger.error("Printer profiles could not be loaded", error=str(exc))
            self.profiles = []
            self._set_status(f"Printer profiles could not be loaded: {exc}")
            self._refresh_all()
            return

        self.profiles = list(profiles.values())
        if self.selected_index >= len(self.profiles):
            self.selected_index = max(0, len(self.profiles) - 1)
        logger.info("Loaded printer profiles", printers=len(self.profiles))
        self._refresh_all()

    def _preview_directives(self, profile: PrinterProfile):
        return compose_receipt(
            sample_section(profile),
            sample_order(),
            profile,
            self.preview_type,
            currency=self.settings.currency,
        )

    def _set_status(self, message: str) -> None:
        self.system_status = message
        self._refresh_status()

    def _refresh_all(self) -> None:
        self._refresh_printers()
        self._refresh_jobs()
        self._refresh_preview()
        self._refresh_status()

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            start = max(0, selected - rows // 2)
            start = min(start, total - rows)

        return (start, start + rows)

    def _refresh_printers(self) -> None:
        try:
            printers_widget = self.query_one("#printers-list", Static)
        except NoMatches:
            return
        if not self.profiles:
            printers_widget.update("(no printers configured)")
            return

        # Each printer takes two rows: label and last result.
        visible = max(1, self._visible_rows(printers_widget) // 2)
        start, end = self._window_bounds(len(self.profiles), visible, self.selected_index)

        lines = Text()
        if start > 0:
            lines.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                lines.append("\n")
            profile = self.profiles[idx]
            pointer = "➤ " if idx == self.selected_index else "  "
            lines.append(pointer)
            lines.append_text(format_printer_label(profile))
            lines.append("\n    ")
            lines.append_text(format_delivery(self.last_results.get(profile.printer_id)))
        if end < len(self.profiles):
            lines.append("\n⋮", style="dim")

        printers_widget.update(lines)

    def _refresh_jobs(self) -> None:
        try:
            jobs_widget = self.query_one("#jobs-list", Static)
        except NoMatches:
            return
        jobs = recent_print_jobs(_RECENT_JOB_ROWS, db_path=self.settings.db_path)
        if not jobs:
            jobs_widget.update("(no jobs yet)")
            return

        lines = Text()
        for idx, job in enumerate(jobs):
            if idx > 0:
                lines.append("\n")
            status = DeliveryStatus(job.status) if job.status else None
            lines.append(f" {job.status or job.state} ", style=status_badge_style(status))
            lines.append(f" {job.created_at[11:19]} {job.printer_id} {job.content_type}")
            if job.reason:
                lines.append(f" ({job.reason})", style="dim")

        jobs_widget.update(lines)

    def _refresh_preview(self) -> None:
        try:
            preview_widget = self.query_one("#preview", Static)
        except NoMatches:
            return
        profile = self.selected_profile()
        if profile is None:
            preview_widget.update("")
            return
        try:
            directives = self._preview_directives(profile)
        except PrintError as exc:
            preview_widget.update(f"Preview unavailable: {exc}")
            return
        preview_widget.update(render_text_preview(directives, profile.paper_width))

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#status-bar", Static)
        except NoMatches:
            return
        status = self.system_status or "Ready"
        bar.update(
            "j/k select  t test page  p kitchen preview  c customer preview  s save PNG  r reload  Ctrl+Q quit\n"
            f"{status}"
        )
