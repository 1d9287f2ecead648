"""Single print attempt: Building -> Encoding -> Sending -> terminal state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import httpx

from posprint.builder import compose_receipt, encode_receipt
from posprint.config import CURRENCY_LABEL, DELIVERY_TIMEOUT_SECONDS
from posprint.delivery import attempt_delivery
from posprint.errors import InvalidTransition, PrintError
from posprint.log import get_logger
from posprint.models import (
    ContentType,
    DeliveryResult,
    DeliveryStatus,
    OrderMeta,
    PrinterProfile,
    ReceiptContent,
    SortedPrintSection,
)

logger = get_logger(__name__)


class AttemptState(str, Enum):
    BUILDING = "building"
    ENCODING = "encoding"
    SENDING = "sending"
    DELIVERED = "delivered"
    UNCONFIRMED = "unconfirmed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({AttemptState.DELIVERED, AttemptState.UNCONFIRMED, AttemptState.FAILED})

_TRANSITIONS: dict[AttemptState, frozenset[AttemptState]] = {
    AttemptState.BUILDING: frozenset({AttemptState.ENCODING}),
    AttemptState.ENCODING: frozenset({AttemptState.SENDING}),
    AttemptState.SENDING: TERMINAL_STATES,
}

_TERMINAL_FOR_STATUS = {
    DeliveryStatus.DELIVERED: AttemptState.DELIVERED,
    DeliveryStatus.UNCONFIRMED: AttemptState.UNCONFIRMED,
    DeliveryStatus.FAILED: AttemptState.FAILED,
}


@dataclass(frozen=True)
class AttemptOutcome:
    """What happened to one section's print attempt."""

    printer_id: str
    section_id: str
    content_type: ContentType
    state: AttemptState
    result: DeliveryResult | None = None
    content: ReceiptContent | None = None
    error: PrintError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None and self.result.ok

    def describe(self) -> str:
        if self.error is not None:
            return f"not printed: {self.error}"
        if self.result is None:
            return self.state.value
        return self.result.describe()


class PrintAttempt:
    """
    One print of one section to one printer.

    An attempt runs once. Building or encoding errors propagate and leave the
    attempt in the state where they happened; transport problems end it in
    FAILED. A new print starts a new PrintAttempt.
    """

    def __init__(
        self,
        section: SortedPrintSection,
        order: OrderMeta,
        profile: PrinterProfile,
        content_type: ContentType = ContentType.KITCHEN,
        *,
        timeout: float = DELIVERY_TIMEOUT_SECONDS,
        currency: str = CURRENCY_LABEL,
        client: httpx.Client | None = None,
        generated_at: datetime | None = None,
    ) -> None:
        self.section = section
        self.order = order
        self.profile = profile
        self.content_type = content_type
        self.timeout = timeout
        self.currency = currency
        self.client = client
        self.generated_at = generated_at
        self.state = AttemptState.BUILDING
        self.content: ReceiptContent | None = None
        self.result: DeliveryResult | None = None
        self._started = False

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def _advance(self, new_state: AttemptState) -> None:
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise InvalidTransition(f"Print attempt cannot move from {self.state.value} to {new_state.value}")
        logger.debug(
            "Print attempt state change",
            printer_id=self.profile.printer_id,
            section=self.section.section_id,
            state=new_state.value,
        )
        self.state = new_state

    def run(self) -> AttemptOutcome:
        if self._started:
            raise InvalidTransition(f"Print attempt already ran (state {self.state.value})")
        self._started = True

        directives = compose_receipt(
            self.section, self.order, self.profile, self.content_type, currency=self.currency
        )

        self._advance(AttemptState.ENCODING)
        self.content = encode_receipt(
            directives, self.section, self.profile, self.content_type, self.generated_at
        )

        self._advance(AttemptState.SENDING)
        self.result = attempt_delivery(
            self.content, self.profile.connection_string, self.timeout, client=self.client
        )

        self._advance(_TERMINAL_FOR_STATUS[self.result.status])
        return AttemptOutcome(
            printer_id=self.profile.printer_id,
            section_id=self.section.section_id,
            content_type=self.content_type,
            state=self.state,
            result=self.result,
            content=self.content,
        )
