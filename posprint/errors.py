"""Exception hierarchy for the print pipeline."""

from __future__ import annotations

from typing import Any


class PrintError(Exception):
    """Base class for every error raised by posprint."""


class ConfigurationError(PrintError):
    """Missing default rule, malformed printer profile or unmapped section."""


class UnsupportedDirective(PrintError):
    def __init__(self, directive: Any, family: str) -> None:
        self.directive = directive
        self.family = family
        super().__init__(f"Printer family {family!r} cannot encode {directive!r}")


class NoRouteForItem(PrintError):
    def __init__(self, item: Any) -> None:
        self.item = item
        item_id = getattr(item, "item_id", item)
        super().__init__(f"No sort rule matches item {item_id!r}")


class TransportFailure(PrintError):
    """
    A delivery attempt failed in the network or device layer.

    Raised by transports and converted into a failed DeliveryResult by
    attempt_delivery(); callers of the public API never see it raised.
    """

    def __init__(self, reason: Any, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        label = getattr(reason, "value", reason)
        super().__init__(f"{label}: {detail}" if detail else str(label))


class InvalidTransition(PrintError):
    """A print attempt was asked to move to a state it cannot reach."""
