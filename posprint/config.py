"""Runtime configuration defaults for the print store, delivery and previews."""

from __future__ import annotations

import os
from dataclasses import dataclass

DB_PATH = "data/posprint.db"

DELIVERY_TIMEOUT_SECONDS = 10.0

# Preview rendering values, tuned for an 80 mm thermal roll.
PREVIEW_WIDTH_PX = 576
PREVIEW_FONT_SIZE = 22
PREVIEW_FONT_PATH = "/System/Library/Fonts/Menlo.ttc"
PREVIEW_LEFT_INDENT_PX = 8
PREVIEW_DIR = "previews"

CURRENCY_LABEL = "kr"

LOG_LEVEL = "INFO"
LOG_FORMAT = "dev"
CONSOLE_LOG_FILE = "/tmp/posprint-console.log"

_ENV_PREFIX = "POSPRINT_"


def _env(name: str, default: str) -> str:
    value = os.environ.get(f"{_ENV_PREFIX}{name}", "").strip()
    return value or default


@dataclass(frozen=True)
class PrintSettings:
    """Immutable settings snapshot built once at startup and passed explicitly."""

    db_path: str = DB_PATH
    delivery_timeout: float = DELIVERY_TIMEOUT_SECONDS
    font_path: str | None = None
    currency: str = CURRENCY_LABEL
    log_level: str = LOG_LEVEL
    log_format: str = LOG_FORMAT
    log_file: str | None = None
    record_jobs: bool = True

    @classmethod
    def from_env(cls) -> PrintSettings:
        timeout_raw = _env("DELIVERY_TIMEOUT", str(DELIVERY_TIMEOUT_SECONDS))
        try:
            timeout = float(timeout_raw)
        except ValueError:
            raise ValueError(f"POSPRINT_DELIVERY_TIMEOUT must be a number, got {timeout_raw!r}") from None
        if timeout <= 0:
            raise ValueError("POSPRINT_DELIVERY_TIMEOUT must be positive")

        return cls(
            db_path=_env("DB_PATH", DB_PATH),
            delivery_timeout=timeout,
            font_path=_env("FONT_PATH", "") or None,
            currency=_env("CURRENCY", CURRENCY_LABEL),
            log_level=_env("LOG_LEVEL", LOG_LEVEL).upper(),
            log_format=_env("LOG_FORMAT", LOG_FORMAT).lower(),
            log_file=_env("LOG_FILE", "") or None,
            record_jobs=_env("RECORD_JOBS", "1") not in {"0", "false", "no"},
        )
