"""Entry point for the posprint printer console."""

from __future__ import annotations

from dataclasses import replace

from posprint.config import CONSOLE_LOG_FILE, PrintSettings
from posprint.console import PrinterConsoleApp
from posprint.events import NotificationBus
from posprint.log import get_logger, setup_logging
from posprint.persistence import bootstrap_schema


def main() -> None:
    """Run the Textual application."""
    settings = PrintSettings.from_env()
    if settings.log_file is None:
        # Records on stdout would draw over the Textual screen.
        settings = replace(settings, log_file=CONSOLE_LOG_FILE)
    setup_logging(settings)
    bootstrap_schema(settings.db_path)
    get_logger(__name__).info("Starting printer console", db_path=settings.db_path)

    bus = NotificationBus()
    try:
        PrinterConsoleApp(settings=settings, bus=bus).run()
    finally:
        bus.close()


if __name__ == "__main__":
    main()
