"""
Best-effort delivery of an encoded receipt to a printer.

One call is one attempt: a single transmission bounded by a timeout, reported
as delivered, unconfirmed (bytes accepted, no acknowledgement) or failed with
a reason. Retrying is the caller's decision.

Connection strings:
    192.168.8.197            HTTP POST to http://192.168.8.197/
    http://host[:port]/path  HTTP POST (PUT when the device refuses POST)
    tcp://host[:port]        raw socket, port 9100 by default
    usb://28e9:0289          USB vendor:product in hex
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable
from urllib.parse import urlsplit

import httpx
from escpos.printer import Network, Usb

from posprint.config import DELIVERY_TIMEOUT_SECONDS
from posprint.errors import ConfigurationError, TransportFailure
from posprint.log import get_logger
from posprint.models import DeliveryResult, DeliveryStatus, FailureReason, ReceiptContent

logger = get_logger(__name__)

RAW_PRINT_PORT = 9100

# Devices that only take PUT answer POST with one of these.
_PUT_FALLBACK_STATUSES = frozenset({405, 501})
# Status codes where the device itself reports the job as done.
_CONFIRMED_STATUSES = frozenset({200, 201})


@dataclass(frozen=True)
class Endpoint:
    scheme: str
    host: str = ""
    port: int | None = None
    url: str = ""
    vendor_id: int | None = None
    product_id: int | None = None


def parse_connection_string(connection_string: str) -> Endpoint:
    text = (connection_string or "").strip()
    if not text:
        raise ConfigurationError("Empty printer connection string")
    if "://" not in text:
        text = f"http://{text}"

    parts = urlsplit(text)
    scheme = parts.scheme.lower()

    if scheme == "usb":
        vendor, sep, product = parts.netloc.partition(":")
        try:
            if not sep:
                raise ValueError(parts.netloc)
            return Endpoint(scheme=scheme, vendor_id=int(vendor, 16), product_id=int(product, 16))
        except ValueError:
            raise ConfigurationError(f"USB connection string must be usb://VENDOR:PRODUCT, got {connection_string!r}") from None

    if not parts.hostname:
        raise ConfigurationError(f"Connection string {connection_string!r} has no host")
    try:
        port = parts.port
    except ValueError:
        raise ConfigurationError(f"Connection string {connection_string!r} has an invalid port") from None

    if scheme in {"http", "https"}:
        url = text if parts.path else f"{text}/"
        return Endpoint(scheme=scheme, host=parts.hostname, port=port, url=url)
    if scheme == "tcp":
        return Endpoint(scheme=scheme, host=parts.hostname, port=port or RAW_PRINT_PORT)

    raise ConfigurationError(f"Unsupported printer transport {scheme!r} in {connection_string!r}")


def _exception_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def _network_reason(exc: BaseException, default: FailureReason = FailureReason.UNREACHABLE) -> FailureReason:
    chain = _exception_chain(exc)
    if any(isinstance(err, TimeoutError) for err in chain):
        return FailureReason.TIMEOUT
    if any(isinstance(err, ConnectionRefusedError) for err in chain):
        return FailureReason.CONNECTION_REFUSED
    if "refused" in str(exc).lower():
        return FailureReason.CONNECTION_REFUSED
    if any(isinstance(err, OSError) for err in chain):
        return FailureReason.UNREACHABLE
    return default


def _request(
    client: httpx.Client, method: str, url: str, payload: bytes, headers: dict[str, str], deadline: float
) -> httpx.Response:
    """
    Send one request and drain its response before the deadline.

    httpx timeouts bound each connect, write and read separately, so the body
    is streamed and the deadline is checked between chunks as well.
    """
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise TransportFailure(FailureReason.TIMEOUT, f"no time left for {method} {url}")
    try:
        with client.stream(method, url, content=payload, headers=headers, timeout=remaining) as response:
            for _ in response.iter_raw():
                if time.monotonic() > deadline:
                    break
    except httpx.TimeoutException as exc:
        raise TransportFailure(FailureReason.TIMEOUT, f"{method} {url} timed out after {remaining:.1f}s") from exc
    except httpx.ConnectError as exc:
        raise TransportFailure(_network_reason(exc), f"{method} {url}: {exc}") from exc
    except httpx.HTTPError as exc:
        raise TransportFailure(FailureReason.TRANSPORT_ERROR, f"{method} {url}: {exc}") from exc

    if time.monotonic() > deadline:
        raise TransportFailure(FailureReason.TIMEOUT, f"{method} {url} still answering after {remaining:.1f}s")
    return response


def _send_http(
    endpoint: Endpoint, content: ReceiptContent, timeout: float, client: httpx.Client | None
) -> DeliveryResult:
    deadline = time.monotonic() + timeout
    headers = {"Content-Type": content.media_type}
    http = client if client is not None else httpx.Client(timeout=timeout)

    try:
        for method in ("POST", "PUT"):
            response = _request(http, method, endpoint.url, content.payload, headers, deadline)
            if method == "POST" and response.status_code in _PUT_FALLBACK_STATUSES:
                logger.info("Printer refused POST, sending as PUT", url=endpoint.url, status=response.status_code)
                continue
            break
    finally:
        if client is None:
            http.close()

    status = response.status_code
    detail = f"HTTP {status} from {method} {endpoint.url}"
    if status in _CONFIRMED_STATUSES:
        return DeliveryResult.delivered(endpoint.scheme, detail=detail)
    if 200 <= status < 300:
        return DeliveryResult.unconfirmed(endpoint.scheme, detail=detail)
    raise TransportFailure(FailureReason.UNEXPECTED_STATUS, detail)


def _close_printer(printer: Network | Usb, target: str) -> None:
    try:
        printer.close()
    except Exception:
        logger.warning("Printer connection did not close cleanly", exc_info=True, target=target)


def _send_raw(
    make_printer: Callable[[], Network | Usb],
    transport: str,
    payload: bytes,
    target: str,
    default_reason: FailureReason,
) -> DeliveryResult:
    printer = None
    try:
        printer = make_printer()
        printer.open()
        printer._raw(payload)
    except Exception as exc:
        # Driver backends raise their own types, e.g. RuntimeError without a usb library or
        # pyusb's NoBackendError (a ValueError).
        raise TransportFailure(_network_reason(exc, default_reason), f"{target}: {exc}") from exc
    finally:
        if printer is not None:
            _close_printer(printer, target)
    # Raw transports never acknowledge a job.
    return DeliveryResult.unconfirmed(transport, detail=f"{len(payload)} bytes written to {target}")


def attempt_delivery(
    content: ReceiptContent,
    connection_string: str,
    timeout: float = DELIVERY_TIMEOUT_SECONDS,
    *,
    client: httpx.Client | None = None,
) -> DeliveryResult:
    """
    Send content once and report what happened.

    Transport problems come back as a failed DeliveryResult; only a malformed
    connection string raises (ConfigurationError).
    """
    endpoint = parse_connection_string(connection_string)
    started = time.monotonic()

    try:
        if endpoint.scheme in {"http", "https"}:
            result = _send_http(endpoint, content, timeout, client)
        elif endpoint.scheme == "tcp":
            result = _send_raw(
                partial(Network, endpoint.host, port=endpoint.port, timeout=timeout),
                "tcp",
                content.payload,
                f"{endpoint.host}:{endpoint.port}",
                FailureReason.TRANSPORT_ERROR,
            )
        else:
            result = _send_raw(
                partial(Usb, endpoint.vendor_id, endpoint.product_id, timeout=int(timeout * 1000)),
                "usb",
                content.payload,
                f"usb {endpoint.vendor_id:04x}:{endpoint.product_id:04x}",
                FailureReason.DEVICE_NOT_FOUND,
            )
    except TransportFailure as exc:
        result = DeliveryResult.failed(exc.reason, exc.detail, transport=endpoint.scheme)

    result = replace(result, elapsed=time.monotonic() - started)

    log = logger.warning if result.status is DeliveryStatus.FAILED else logger.info
    log(
        "Print delivery attempt finished",
        printer_id=content.printer_id,
        section=content.section_id,
        status=result.status.value,
        reason=result.reason.value if result.reason else None,
        bytes=content.size,
        elapsed=round(result.elapsed, 3),
    )
    return result
