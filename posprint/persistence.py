"""SQLite persistence for printer profiles, sort rules and the print-job log."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from posprint.config import DB_PATH
from posprint.errors import ConfigurationError
from posprint.models import PrinterProfile, RuleKind, SortRule

if TYPE_CHECKING:
    from posprint.attempt import AttemptOutcome


@dataclass(frozen=True)
class PrintJobRecord:
    """One logged print attempt."""

    job_id: int
    created_at: str
    order_id: str | None
    printer_id: str
    section_id: str
    content_type: str
    state: str
    status: str | None
    reason: str | None
    detail: str
    content_hash: str | None
    byte_count: int


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _connect(db_path: str = DB_PATH) -> sqlite3.Connection:
    db_file = Path(db_path)
    db_file.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_file)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def bootstrap_schema(db_path: str = DB_PATH) -> None:
    """Create persistence schema if it does not already exist."""
    with _connect(db_path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS printer_profiles (
                printer_id TEXT PRIMARY KEY,
                connection_string TEXT NOT NULL,
                family TEXT NOT NULL DEFAULT 'escpos',
                display_name TEXT NOT NULL DEFAULT '',
                paper_width INTEGER NOT NULL DEFAULT 48,
                capabilities TEXT NOT NULL DEFAULT '',
                print_kitchen_receipts INTEGER NOT NULL DEFAULT 1,
                print_customer_receipts INTEGER NOT NULL DEFAULT 0,
                auto_print_on_order INTEGER NOT NULL DEFAULT 1,
                auto_print_on_payment INTEGER NOT NULL DEFAULT 0,
                cut_command_hex TEXT,
                prices_on_kitchen INTEGER NOT NULL DEFAULT 1,
                is_active INTEGER NOT NULL DEFAULT 1
            );

            CREATE TABLE IF NOT EXISTS sort_rules (
                rule_id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                match_value TEXT,
                target TEXT NOT NULL,
                rule_order INTEGER NOT NULL DEFAULT 0,
                name TEXT NOT NULL DEFAULT '',
                is_active INTEGER NOT NULL DEFAULT 1,
                position INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS print_jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TEXT NOT NULL,
                order_id TEXT,
                printer_id TEXT NOT NULL,
                section_id TEXT NOT NULL,
                content_type TEXT NOT NULL,
                state TEXT NOT NULL,
                status TEXT,
                reason TEXT,
                detail TEXT NOT NULL DEFAULT '',
                content_hash TEXT,
                byte_count INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_print_jobs_printer_created
                ON print_jobs(printer_id, created_at);
            """
        )

        printer_columns = {row[1] for row in conn.execute("PRAGMA table_info(printer_profiles)")}
        if "is_active" not in printer_columns:
            conn.execute("ALTER TABLE printer_profiles ADD COLUMN is_active INTEGER NOT NULL DEFAULT 1")


def save_printer_profile(profile: PrinterProfile, db_path: str = DB_PATH) -> None:
    """Insert or replace a printer profile."""
    with _connect(db_path) as conn:
        with conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO printer_profiles (
                    printer_id, connection_string, family, display_name, paper_width, capabilities,
                    print_kitchen_receipts, print_customer_receipts, auto_print_on_order,
                    auto_print_on_payment, cut_command_hex, prices_on_kitchen, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    profile.printer_id,
                    profile.connection_string,
                    profile.family.value,
                    profile.display_name,
                    profile.paper_width,
                    ",".join(sorted(profile.capabilities)),
                    int(profile.print_kitchen_receipts),
                    int(profile.print_customer_receipts),
                    int(profile.auto_print_on_order),
                    int(profile.auto_print_on_payment),
                    profile.cut_command_hex,
                    int(profile.prices_on_kitchen),
                    int(profile.active),
                ),
            )


def load_printer_profiles(db_path: str = DB_PATH) -> dict[str, PrinterProfile]:
    """All stored profiles keyed by printer_id; a malformed row raises ConfigurationError."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            """
            SELECT printer_id, connection_string, family, display_name, paper_width, capabilities,
                   print_kitchen_receipts, print_customer_receipts, auto_print_on_order,
                   auto_print_on_payment, cut_command_hex, prices_on_kitchen, is_active
            FROM printer_profiles
            ORDER BY printer_id
            """
        ).fetchall()

    profiles: dict[str, PrinterProfile] = {}
    for row in rows:
        capabilities = frozenset(cap for cap in row[5].split(",") if cap)
        profiles[row[0]] = PrinterProfile(
            printer_id=row[0],
            connection_string=row[1],
            family=row[2],
            display_name=row[3],
            paper_width=row[4],
            capabilities=capabilities,
            print_kitchen_receipts=bool(row[6]),
            print_customer_receipts=bool(row[7]),
            auto_print_on_order=bool(row[8]),
            auto_print_on_payment=bool(row[9]),
            cut_command_hex=row[10],
            prices_on_kitchen=bool(row[11]),
            active=bool(row[12]),
        )
    return profiles


def save_sort_rule(rule: SortRule, db_path: str = DB_PATH) -> None:
    """Insert or replace a sort rule, keeping the position it was first declared at."""
    with _connect(db_path) as conn:
        with conn:
            existing = conn.execute("SELECT position FROM sort_rules WHERE rule_id = ?", (rule.rule_id,)).fetchone()
            if existing is not None:
                position = existing[0]
            else:
                position = conn.execute("SELECT COALESCE(MAX(position) + 1, 0) FROM sort_rules").fetchone()[0]
            conn.execute(
                """
                INSERT OR REPLACE INTO sort_rules (rule_id, kind, match_value, target, rule_order, name, is_active, position)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (rule.rule_id, rule.kind.value, rule.match, rule.target, rule.order, rule.name, int(rule.active), position),
            )


def load_sort_rules(db_path: str = DB_PATH, include_inactive: bool = True) -> list[SortRule]:
    """Stored rules in declaration order."""
    query = "SELECT rule_id, kind, match_value, target, rule_order, name, is_active FROM sort_rules"
    if not include_inactive:
        query += " WHERE is_active = 1"
    query += " ORDER BY position"

    with _connect(db_path) as conn:
        rows = conn.execute(query).fetchall()

    rules = []
    for rule_id, kind, match, target, order, name, active in rows:
        try:
            rule_kind = RuleKind(kind)
        except ValueError:
            raise ConfigurationError(f"Sort rule {rule_id!r} has unknown kind {kind!r}") from None
        rules.append(
            SortRule(rule_id=rule_id, kind=rule_kind, match=match, target=target, order=order, name=name, active=bool(active))
        )
    return rules


def record_print_job(outcome: AttemptOutcome, order_id: str | None = None, db_path: str = DB_PATH) -> int:
    """Append one attempt outcome to the print-job log and return its row id."""
    result = outcome.result
    content = outcome.content
    if outcome.error is not None:
        detail = str(outcome.error)
    elif result is not None:
        detail = result.detail
    else:
        detail = ""

    with _connect(db_path) as conn:
        with conn:
            cur = conn.execute(
                """
                INSERT INTO print_jobs (
                    created_at, order_id, printer_id, section_id, content_type, state,
                    status, reason, detail, content_hash, byte_count
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    _utc_now_iso(),
                    order_id,
                    outcome.printer_id,
                    outcome.section_id,
                    outcome.content_type.value,
                    outcome.state.value,
                    result.status.value if result else None,
                    result.reason.value if result and result.reason else None,
                    detail,
                    content.content_hash if content else None,
                    content.size if content else 0,
                ),
            )
            return int(cur.lastrowid)


def recent_print_jobs(limit: int = 20, printer_id: str | None = None, db_path: str = DB_PATH) -> list[PrintJobRecord]:
    """Newest logged attempts first."""
    query = (
        "SELECT id, created_at, order_id, printer_id, section_id, content_type, state, "
        "status, reason, detail, content_hash, byte_count FROM print_jobs"
    )
    params: tuple = ()
    if printer_id is not None:
        query += " WHERE printer_id = ?"
        params = (printer_id,)
    query += " ORDER BY id DESC LIMIT ?"
    params += (limit,)

    with _connect(db_path) as conn:
        rows = conn.execute(query, params).fetchall()
    return [PrintJobRecord(*row) for row in rows]
