"""Fan an order's print trigger out into independent, concurrent print attempts."""

from __future__ import annotations

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Mapping

import httpx

from posprint.attempt import AttemptOutcome, AttemptState, PrintAttempt
from posprint.config import PrintSettings
from posprint.errors import ConfigurationError, PrintError
from posprint.events import Notification, NotificationBus
from posprint.log import get_logger
from posprint.models import (
    ContentType,
    DeliveryStatus,
    OrderMeta,
    PrintableItem,
    PrinterProfile,
    PrintTrigger,
    SortedPrintSection,
    SortRule,
)
from posprint.persistence import load_printer_profiles, load_sort_rules, record_print_job
from posprint.routing import RuleEvaluator

logger = get_logger(__name__)


@dataclass(frozen=True)
class PrintJob:
    section: SortedPrintSection
    profile: PrinterProfile
    content_type: ContentType


def _profile_map(profiles: Mapping[str, PrinterProfile] | Iterable[PrinterProfile]) -> dict[str, PrinterProfile]:
    if isinstance(profiles, Mapping):
        return dict(profiles)
    return {profile.printer_id: profile for profile in profiles}


def _kitchen_jobs(
    items: list[PrintableItem], rules: Iterable[SortRule], profiles: dict[str, PrinterProfile]
) -> list[PrintJob]:
    sections = RuleEvaluator(rules).route(items)

    missing = [section.section_id for section in sections if section.section_id not in profiles]
    if missing:
        raise ConfigurationError(f"No printer profile for section(s) {', '.join(missing)}")
    inactive = [section.section_id for section in sections if not profiles[section.section_id].active]
    if inactive:
        raise ConfigurationError(f"Printer profile for section(s) {', '.join(inactive)} is inactive")

    jobs = []
    for section in sections:
        profile = profiles[section.section_id]
        if not (profile.print_kitchen_receipts and profile.auto_print_on_order):
            logger.warning(
                "Printer skips kitchen tickets on order placement",
                printer_id=profile.printer_id,
                items=len(section.items),
            )
            continue
        jobs.append(PrintJob(section, profile, ContentType.KITCHEN))
    return jobs


def _customer_jobs(items: list[PrintableItem], profiles: dict[str, PrinterProfile]) -> list[PrintJob]:
    jobs = []
    for profile in profiles.values():
        if profile.active and profile.print_customer_receipts and profile.auto_print_on_payment:
            section = SortedPrintSection(section_id=profile.printer_id, items=tuple(items))
            jobs.append(PrintJob(section, profile, ContentType.CUSTOMER))
    if not jobs:
        logger.info("No printer prints customer receipts on payment")
    return jobs


def plan_jobs(
    items: Iterable[PrintableItem],
    rules: Iterable[SortRule],
    profiles: Mapping[str, PrinterProfile] | Iterable[PrinterProfile],
    trigger: PrintTrigger,
) -> list[PrintJob]:
    """
    Work out which printer gets what for a trigger.

    Raises ConfigurationError or NoRouteForItem before anything is printed.
    """
    item_list = list(items)
    if not item_list:
        return []
    profile_map = _profile_map(profiles)
    if PrintTrigger(trigger) is PrintTrigger.ORDER_PLACED:
        return _kitchen_jobs(item_list, rules, profile_map)
    return _customer_jobs(item_list, profile_map)


def _run_job(
    job: PrintJob, order: OrderMeta, settings: PrintSettings, client: httpx.Client | None
) -> AttemptOutcome:
    attempt = PrintAttempt(
        job.section,
        order,
        job.profile,
        job.content_type,
        timeout=settings.delivery_timeout,
        currency=settings.currency,
        client=client,
    )
    try:
        return attempt.run()
    except PrintError as exc:
        logger.error(
            "Print attempt stopped",
            printer_id=job.profile.printer_id,
            section=job.section.section_id,
            state=attempt.state.value,
            error=str(exc),
        )
        return AttemptOutcome(
            printer_id=job.profile.printer_id,
            section_id=job.section.section_id,
            content_type=job.content_type,
            state=attempt.state,
            content=attempt.content,
            error=exc,
        )


def _notification_for(outcome: AttemptOutcome, label: str, order_id: str) -> Notification:
    what = f"{outcome.content_type.value} ticket for {outcome.section_id} on {label}"
    if outcome.error is None and outcome.result is not None:
        if outcome.result.status is DeliveryStatus.DELIVERED:
            severity = "information"
        elif outcome.result.status is DeliveryStatus.UNCONFIRMED:
            severity = "warning"
        else:
            severity = "error"
    else:
        severity = "error"
    return Notification(
        message=f"{what}: {outcome.describe()}",
        severity=severity,
        printer_id=outcome.printer_id,
        order_id=order_id,
    )


def print_order(
    order: OrderMeta,
    items: Iterable[PrintableItem],
    rules: Iterable[SortRule],
    profiles: Mapping[str, PrinterProfile] | Iterable[PrinterProfile],
    trigger: PrintTrigger = PrintTrigger.ORDER_PLACED,
    *,
    settings: PrintSettings | None = None,
    bus: NotificationBus | None = None,
    client: httpx.Client | None = None,
) -> list[AttemptOutcome]:
    """
    Print everything a trigger calls for and return one outcome per attempt.

    Attempts run concurrently and independently; one failing printer does not
    stop the others. Outcomes come back in routing order.
    """
    settings = settings or PrintSettings()
    jobs = plan_jobs(items, rules, profiles, trigger)
    if not jobs:
        return []

    logger.info("Dispatching print jobs", order_id=order.order_id, trigger=PrintTrigger(trigger).value, jobs=len(jobs))

    with ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="posprint") as pool:
        futures = [pool.submit(_run_job, job, order, settings, client) for job in jobs]
        outcomes = [future.result() for future in futures]

    for job, outcome in zip(jobs, outcomes):
        if settings.record_jobs:
            try:
                record_print_job(outcome, order.order_id, db_path=settings.db_path)
            except sqlite3.Error:
                logger.error("Could not record print job", exc_info=True, printer_id=outcome.printer_id)
        if bus is not None:
            bus.publish(_notification_for(outcome, job.profile.label, order.order_id))

    failed = sum(1 for outcome in outcomes if outcome.state is AttemptState.FAILED or outcome.error is not None)
    logger.info("Print jobs finished", order_id=order.order_id, jobs=len(outcomes), failed=failed)
    return outcomes


def print_with_stored_config(
    order: OrderMeta,
    items: Iterable[PrintableItem],
    trigger: PrintTrigger = PrintTrigger.ORDER_PLACED,
    *,
    settings: PrintSettings | None = None,
    bus: NotificationBus | None = None,
    client: httpx.Client | None = None,
) -> list[AttemptOutcome]:
    """print_order with rules and printer profiles read from the print store at trigger time."""
    settings = settings or PrintSettings()
    rules = load_sort_rules(settings.db_path, include_inactive=False)
    profiles = load_printer_profiles(settings.db_path)
    return print_order(order, items, rules, profiles, trigger, settings=settings, bus=bus, client=client)
