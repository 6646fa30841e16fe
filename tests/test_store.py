import json
import threading
from datetime import datetime
import pytest
from app.core import codec
from app.core.codec import TICKET_FIELDS
from app.core.errors import StorageIOFailure, TicketNotFound
from app.core.lifecycle import TicketLifecycle
from app.services.ticket_store import initialize
from tests.conftest import FIXED_NOW, TODAY

NETWORK_TICKET = {
    "category": "Network",
    "sub_category": "Fiber Cut",
    "building": "LOS3",
    "priority": "P1",
    "opened": "2026-10-19 08:00",
    "reported_by": "Ada Obi",
    "description": 'Uplink down, "core-2" unreachable',
    "status": "Open",
}


def test_initialize_creates_header_only_tables(data_dir, store):
    assert (data_dir / "tickets.csv").read_text() == ",".join(TICKET_FIELDS) + "\n"
    assert (data_dir / "ticket_history.csv").read_text() == "ticket_id,timestamp,action,changes,editor\n"
    assert store.list_tickets() == []


def test_initialize_is_idempotent(data_dir, store):
    store.create_ticket(NETWORK_TICKET)
    again = initialize(data_dir, clock=lambda: FIXED_NOW)
    assert len(again.list_tickets()) == 1


def test_create_assigns_id_and_fills_blank_fields(store):
    ticket = store.create_ticket(NETWORK_TICKET)

    assert ticket["ticket_id"] == f"KASI-LOS3-{TODAY}-NET-0001"
    assert set(ticket) == set(TICKET_FIELDS)
    assert ticket["root_cause"] == ""
    assert ticket["closed"] == ""
    assert ticket["post_review"] == "No"
    assert ticket["sla_breach"] == "No"
    assert ticket["attachments"] == []


def test_second_ticket_of_same_category_gets_next_sequence(store):
    store.create_ticket(NETWORK_TICKET)
    store.create_ticket({**NETWORK_TICKET, "category": "Power"})
    second = store.create_ticket(NETWORK_TICKET)
    assert second["ticket_id"] == f"KASI-LOS3-{TODAY}-NET-0002"


def test_get_returns_what_create_returned(store):
    created = store.create_ticket({**NETWORK_TICKET, "assigned_to": ["Jesse Etuk"], "post_review": True})
    assert store.get_ticket(created["ticket_id"]) == created


def test_sequential_creations_get_distinct_ids(store):
    ids = [store.create_ticket({"category": "Storage", "building": "LOS2"})["ticket_id"] for _ in range(12)]
    assert len(set(ids)) == 12
    assert ids[-1] == f"KASI-LOS2-{TODAY}-STOR-0012"


def test_concurrent_creations_do_not_share_a_sequence():
    store = initialize("unused", backend="memory", clock=lambda: FIXED_NOW)
    ids = []

    def worker():
        ids.append(store.create_ticket({"category": "Cooling", "building": "LOS1"})["ticket_id"])

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(ids)) == 20


def test_concurrent_updates_of_one_ticket_keep_every_change(store):
    ticket_id = store.create_ticket(NETWORK_TICKET)["ticket_id"]
    fields = [
        "location", "contact_info", "impacted", "root_cause",
        "actions_taken", "escalation_history", "resolution_summary", "resolution_time",
    ]

    def worker(field):
        store.update_ticket(ticket_id, {field: f"{field} set"})

    threads = [threading.Thread(target=worker, args=(field,)) for field in fields]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    ticket = store.get_ticket(ticket_id)
    for field in fields:
        assert ticket[field] == f"{field} set", field
    updates = [entry for entry in store.get_history(ticket_id) if entry["action"] == "update"]
    assert sorted(next(iter(json.loads(entry["changes"]))) for entry in updates) == sorted(fields)


def test_update_prepares_changes_from_the_stored_row(store):
    ticket_id = store.create_ticket(NETWORK_TICKET)["ticket_id"]
    store.update_ticket(ticket_id, {"opened": "2026-10-19 09:00"})
    lifecycle = TicketLifecycle(clock=lambda: datetime(2026, 10, 19, 10, 15))
    seen = []

    def prepare(current, changes):
        seen.append(dict(current))
        return lifecycle.apply(current, changes)

    closed = store.update_ticket(ticket_id, {"status": "Closed"}, prepare=prepare)

    assert seen[0]["opened"] == "2026-10-19 09:00"
    assert seen[0]["status"] == "Open"
    assert closed["closed"] == "2026-10-19 10:15"
    assert closed["duration"] == "1 hr 15 mins"
    last = json.loads(store.get_history(ticket_id)[-1]["changes"])
    assert last == {"status": "Closed", "closed": "2026-10-19 10:15", "duration": "1 hr 15 mins"}


def test_supplied_ticket_id_is_kept_and_duplicates_append(store):
    store.create_ticket({"ticket_id": "LEGACY-1", "category": "Server"})
    store.create_ticket({"ticket_id": "LEGACY-1", "category": "Server", "description": "again"})

    rows = store.list_tickets()
    assert [row["ticket_id"] for row in rows] == ["LEGACY-1", "LEGACY-1"]
    assert store.get_ticket("LEGACY-1")["description"] == ""


def test_lookup_is_exact_and_case_sensitive(store):
    ticket_id = store.create_ticket(NETWORK_TICKET)["ticket_id"]
    with pytest.raises(TicketNotFound):
        store.get_ticket(ticket_id.lower())


def test_partial_update_leaves_other_fields_untouched(store):
    before = store.create_ticket({**NETWORK_TICKET, "root_cause": "Backhoe", "assigned_to": "Jesse Etuk"})

    after = store.update_ticket(before["ticket_id"], {"status": "In Progress", "actions_taken": "Dispatched crew"})

    assert after["status"] == "In Progress"
    assert after["actions_taken"] == "Dispatched crew"
    for field in TICKET_FIELDS:
        if field not in ("status", "actions_taken"):
            assert after[field] == before[field], field
    assert store.get_ticket(before["ticket_id"]) == after


def test_update_stores_assignee_list_joined(store):
    ticket_id = store.create_ticket(NETWORK_TICKET)["ticket_id"]

    store.update_ticket(ticket_id, {"assigned_to": ["Jesse Etuk", "Opeyemi Akintelure"]})

    stored = store.get_ticket(ticket_id)["assigned_to"]
    assert stored == "Jesse Etuk;Opeyemi Akintelure"
    assert stored.split(";") == ["Jesse Etuk", "Opeyemi Akintelure"]


def test_blank_assignee_keeps_previous_value(store):
    ticket_id = store.create_ticket({**NETWORK_TICKET, "assigned_to": "Jesse Etuk"})["ticket_id"]
    assert store.update_ticket(ticket_id, {"assigned_to": ""})["assigned_to"] == "Jesse Etuk"
    assert store.update_ticket(ticket_id, {"assigned_to": []})["assigned_to"] == ""


def test_flags_normalized_only_when_present(store):
    ticket_id = store.create_ticket({**NETWORK_TICKET, "sla_breach": "yes"})["ticket_id"]
    assert store.get_ticket(ticket_id)["sla_breach"] == "Yes"

    updated = store.update_ticket(ticket_id, {"post_review": True})
    assert updated["post_review"] == "Yes"
    assert updated["sla_breach"] == "Yes"

    updated = store.update_ticket(ticket_id, {"sla_breach": "", "post_review": "No"})
    assert updated["sla_breach"] == "No"
    assert updated["post_review"] == "No"


def test_none_clears_a_field(store):
    ticket_id = store.create_ticket({**NETWORK_TICKET, "closed": "2026-10-19 09:00"})["ticket_id"]
    assert store.update_ticket(ticket_id, {"closed": None})["closed"] == ""


def test_ticket_id_can_not_be_changed(store):
    ticket_id = store.create_ticket(NETWORK_TICKET)["ticket_id"]
    updated = store.update_ticket(ticket_id, {"ticket_id": "HIJACKED", "priority": "P0"})
    assert updated["ticket_id"] == ticket_id
    with pytest.raises(TicketNotFound):
        store.get_ticket("HIJACKED")


def test_unknown_fields_are_not_persisted(store):
    ticket_id = store.create_ticket({**NETWORK_TICKET, "detectedByOther": "pager"})["ticket_id"]
    assert "detectedByOther" not in store.get_ticket(ticket_id)


def test_caller_supplied_duration_is_persisted_verbatim(store):
    ticket_id = store.create_ticket({**NETWORK_TICKET, "opened": "2026-10-19 08:00"})["ticket_id"]

    closed = store.update_ticket(ticket_id, {"status": "Closed", "closed": "2026-10-19 10:15", "duration": "2 hrs 15 mins"})

    assert closed["duration"] == "2 hrs 15 mins"
    assert closed["closed"] == "2026-10-19 10:15"


def test_attachments_replace_on_upload_else_retain(store):
    ticket = store.create_ticket(NETWORK_TICKET, attachment_names=["1700000000000-a.png", "1700000000001-b.log"])
    assert ticket["attachments"] == ["/uploads/1700000000000-a.png", "/uploads/1700000000001-b.log"]

    kept = store.update_ticket(ticket["ticket_id"], {"attachments": ["/uploads/evil.sh"], "priority": "P2"})
    assert kept["attachments"] == ticket["attachments"]

    replaced = store.update_ticket(ticket["ticket_id"], {}, attachment_names=["1700000000002-c.pdf"])
    assert replaced["attachments"] == ["/uploads/1700000000002-c.pdf"]


def test_missing_ticket_is_not_found_and_nothing_is_written(data_dir, store):
    store.create_ticket(NETWORK_TICKET)
    tickets_before = (data_dir / "tickets.csv").read_text()
    history_before = (data_dir / "ticket_history.csv").read_text()

    with pytest.raises(TicketNotFound):
        store.get_ticket("nonexistent")
    with pytest.raises(TicketNotFound):
        store.update_ticket("nonexistent", {"status": "Closed"})
    with pytest.raises(TicketNotFound):
        store.delete_ticket("nonexistent")

    assert (data_dir / "tickets.csv").read_text() == tickets_before
    assert (data_dir / "ticket_history.csv").read_text() == history_before


def test_history_records_every_mutation_in_order(store):
    ticket_id = store.create_ticket(NETWORK_TICKET, attachment_names=["1-photo.jpg"])["ticket_id"]
    store.create_ticket({**NETWORK_TICKET, "category": "Power"})
    store.update_ticket(ticket_id, {"status": "Resolved"}, editor="Shift Lead")

    history = store.get_history(ticket_id)

    assert [entry["action"] for entry in history] == ["create", "update"]
    assert history[0]["timestamp"] == "2026-10-19T09:30:15.250Z"
    assert history[0]["editor"] == "Ada Obi"
    assert json.loads(history[0]["changes"])["attachments"] == "1-photo.jpg"
    assert json.loads(history[1]["changes"]) == {"status": "Resolved"}
    assert history[1]["editor"] == "Shift Lead"


def test_delete_removes_row_but_keeps_history(store):
    first = store.create_ticket(NETWORK_TICKET)["ticket_id"]
    second = store.create_ticket(NETWORK_TICKET)["ticket_id"]

    store.delete_ticket(first)

    assert [t["ticket_id"] for t in store.list_tickets()] == [second]
    assert [entry["action"] for entry in store.get_history(first)] == ["create", "delete"]


def test_list_round_trips_through_the_codec(store):
    store.create_ticket(NETWORK_TICKET, attachment_names=["9-trace.pcap"])
    store.create_ticket({"category": "Database", "description": "Replica lag, 40s"})

    exported = codec.decode(store.export_table())
    listed = store.list_tickets()

    assert [row["ticket_id"] for row in exported] == [row["ticket_id"] for row in listed]
    assert exported[0]["attachments"] == "9-trace.pcap"
    assert exported[1]["description"] == "Replica lag, 40s"
    assert codec.decode(codec.encode(exported, TICKET_FIELDS)) == exported


@pytest.mark.parametrize("backend", ["memory", "sql"])
def test_other_backends_behave_the_same(tmp_path, backend):
    store = initialize(tmp_path / backend, backend=backend, clock=lambda: FIXED_NOW)

    created = store.create_ticket({**NETWORK_TICKET, "assigned_to": ["A", "B"]})
    store.create_ticket(NETWORK_TICKET)
    updated = store.update_ticket(created["ticket_id"], {"status": "In Progress"})

    assert updated["assigned_to"] == "A;B"
    assert [t["ticket_id"] for t in store.list_tickets()] == [
        f"KASI-LOS3-{TODAY}-NET-0001",
        f"KASI-LOS3-{TODAY}-NET-0002",
    ]
    assert store.get_ticket(created["ticket_id"])["status"] == "In Progress"
    assert [e["action"] for e in store.get_history(created["ticket_id"])] == ["create", "update"]
    assert store.ping()


def test_unknown_backend_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        initialize(tmp_path, backend="redis")


def test_unreadable_table_raises_storage_failure(tmp_path):
    (tmp_path / "tickets.csv").mkdir()
    store = initialize(tmp_path)
    with pytest.raises(StorageIOFailure):
        store.list_tickets()
    assert not store.ping()
