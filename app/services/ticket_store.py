"""
Ticket persistence and identity assignment.

The store is the only writer of the ticket and history tables. Every
operation runs its whole read-modify-write cycle under one lock, so two
concurrent creates can not draw the same sequence number and two concurrent
updates can not drop each other's changes. Nothing is rolled back: if the
ticket table is written and the history append then fails, the two tables
diverge and the failure is reported to the caller.
"""
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from app.core import codec
from app.core.attachments import join_names, to_urls
from app.core.codec import HISTORY_FIELDS, TICKET_FIELDS
from app.core.db import make_engine
from app.core.errors import TicketNotFound
from app.core.ticket_id import generate as generate_ticket_id
from app.models.ticket import HistoryRecord, TicketRecord
from app.storage.base import TableBackend
from app.storage.csv_table import CsvTable
from app.storage.memory_table import MemoryTable
from app.storage.sql_table import SqlTable

logger = logging.getLogger(__name__)

TICKETS_FILE = "tickets.csv"
HISTORY_FILE = "ticket_history.csv"

FLAG_FIELDS = ("post_review", "sla_breach")
_TRUTHY = {"yes", "y", "true", "1", "on"}


def yes_no(value: Any) -> str:
    if value is True:
        return "Yes"
    return "Yes" if str(value).strip().lower() in _TRUTHY else "No"


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ";".join(to_text(item) for item in value)
    return str(value)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TicketStore:
    def __init__(
        self,
        tickets: TableBackend,
        history: TableBackend,
        url_prefix: str = "/uploads",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.tickets = tickets
        self.history = history
        self.url_prefix = url_prefix
        self.clock = clock or _utc_now
        self._lock = threading.RLock()

    # -- helpers ---------------------------------------------------------

    def _resolve(self, row: Mapping[str, str]) -> Dict[str, Any]:
        ticket: Dict[str, Any] = dict(row)
        ticket["attachments"] = to_urls(row.get("attachments"), self.url_prefix)
        return ticket

    def _timestamp(self) -> str:
        now = self.clock().astimezone(timezone.utc)
        return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def _record_history(self, ticket_id: str, action: str, changes: Mapping[str, Any], editor: Optional[str]) -> None:
        self.history.append({
            "ticket_id": ticket_id,
            "timestamp": self._timestamp(),
            "action": action,
            "changes": json.dumps(changes, default=str, ensure_ascii=False),
            "editor": to_text(editor),
        })

    @staticmethod
    def _find(rows: List[Dict[str, str]], ticket_id: str) -> int:
        for index, row in enumerate(rows):
            if row.get("ticket_id") == ticket_id:
                return index
        raise TicketNotFound(ticket_id)

    # -- operations ------------------------------------------------------

    def create_ticket(
        self,
        fields: Mapping[str, Any],
        attachment_names: Iterable[str] = (),
        editor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Append a new ticket and its `create` history entry.

        A missing ticket_id is generated from category, building and today's
        date. A supplied one is used as-is, even if another row already has it.
        """
        fields = dict(fields or {})
        stored_names = join_names(attachment_names)

        with self._lock:
            ticket_id = to_text(fields.get("ticket_id")).strip()
            if not ticket_id:
                ticket_id = generate_ticket_id(
                    to_text(fields.get("category")),
                    to_text(fields.get("building")),
                    self.tickets.load_all(),
                    today=self.clock().date(),
                )

            row = {name: to_text(fields.get(name)) for name in TICKET_FIELDS}
            row["ticket_id"] = ticket_id
            row["attachments"] = stored_names
            for flag in FLAG_FIELDS:
                row[flag] = yes_no(fields.get(flag))

            self.tickets.append(row)
            self._record_history(
                ticket_id, "create", {**fields, "attachments": stored_names}, editor or row["reported_by"]
            )

        logger.info("Created ticket %s", ticket_id)
        return self._resolve(row)

    def list_tickets(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self.tickets.load_all()
        return [self._resolve(row) for row in rows]

    def get_ticket(self, ticket_id: str) -> Dict[str, Any]:
        with self._lock:
            rows = self.tickets.load_all()
        return self._resolve(rows[self._find(rows, ticket_id)])

    def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        attachment_names: Iterable[str] = (),
        editor: Optional[str] = None,
        prepare: Optional[Callable[[Mapping[str, str], Mapping[str, Any]], Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Overwrite the fields present in `changes`; everything else keeps its value.

        New uploads replace the stored attachment list. Without uploads the
        list is kept, whatever the payload says about `attachments`.

        `prepare(current_row, changes)` may rewrite the changes from the row
        as loaded under the lock (status side effects, for instance).
        """
        changes = dict(changes or {})
        stored_names = join_names(attachment_names)

        with self._lock:
            rows = self.tickets.load_all()
            index = self._find(rows, ticket_id)
            updated = dict(rows[index])
            if prepare is not None:
                changes = dict(prepare(rows[index], changes))

            for name in TICKET_FIELDS:
                if name in ("ticket_id", "attachments", "assigned_to") or name in FLAG_FIELDS:
                    continue
                if name in changes:
                    updated[name] = to_text(changes[name])

            assigned = changes.get("assigned_to")
            if isinstance(assigned, (list, tuple)):
                updated["assigned_to"] = ";".join(to_text(name) for name in assigned)
            elif assigned:
                updated["assigned_to"] = to_text(assigned)

            for flag in FLAG_FIELDS:
                if flag in changes:
                    updated[flag] = yes_no(changes[flag])

            if stored_names:
                updated["attachments"] = stored_names

            rows[index] = updated
            self.tickets.save_all(rows)
            self._record_history(ticket_id, "update", changes, editor or changes.get("reported_by"))

        logger.info("Updated ticket %s (%s)", ticket_id, ", ".join(sorted(changes)) or "no fields")
        return self._resolve(updated)

    def delete_ticket(self, ticket_id: str, editor: Optional[str] = None) -> None:
        """Remove the ticket row; its history stays and gains a `delete` entry."""
        with self._lock:
            rows = self.tickets.load_all()
            removed = rows.pop(self._find(rows, ticket_id))
            self.tickets.save_all(rows)
            self._record_history(ticket_id, "delete", {"ticket_id": ticket_id}, editor or removed.get("reported_by"))
        logger.info("Deleted ticket %s", ticket_id)

    def get_history(self, ticket_id: str) -> List[Dict[str, str]]:
        with self._lock:
            entries = self.history.load_all()
        return [entry for entry in entries if entry.get("ticket_id") == ticket_id]

    def export_table(self) -> str:
        with self._lock:
            rows = self.tickets.load_all()
        return codec.encode(rows, TICKET_FIELDS)

    def ping(self) -> bool:
        return self.tickets.ping() and self.history.ping()


def initialize(
    storage_path: Union[str, Path],
    backend: str = "csv",
    database_url: Optional[str] = None,
    url_prefix: str = "/uploads",
    clock: Optional[Callable[[], datetime]] = None,
) -> TicketStore:
    """
    Build a TicketStore and run the idempotent setup of its backend.

    csv:    <storage_path>/tickets.csv and ticket_history.csv, header-only when new
    sql:    `tickets` and `ticket_history` tables on database_url
            (default: sqlite file in storage_path)
    memory: nothing is persisted
    """
    storage_path = Path(storage_path)
    if backend == "csv":
        tickets = CsvTable(storage_path / TICKETS_FILE, TICKET_FIELDS)
        history = CsvTable(storage_path / HISTORY_FILE, HISTORY_FIELDS)
    elif backend == "sql":
        if not database_url:
            storage_path.mkdir(parents=True, exist_ok=True)
            database_url = f"sqlite:///{storage_path / 'tickets.db'}"
        engine = make_engine(database_url)
        tickets = SqlTable(engine, TicketRecord, TICKET_FIELDS)
        history = SqlTable(engine, HistoryRecord, HISTORY_FIELDS)
    elif backend == "memory":
        tickets = MemoryTable(TICKET_FIELDS)
        history = MemoryTable(HISTORY_FIELDS)
    else:
        raise ValueError(f"Unknown storage backend: {backend!r}")

    tickets.initialize()
    history.initialize()
    logger.info("Ticket store ready (%s backend at %s)", backend, database_url or storage_path)
    return TicketStore(tickets, history, url_prefix=url_prefix, clock=clock)
