"""
Text codec for the ticket and history tables.

Writing is strict: every value is wrapped in double quotes and interior quotes
are doubled. Reading is permissive: each line is tokenized field by field,
short rows are padded with empty strings and no line is ever rejected.
Line breaks delimit records, so a value can never span lines.
"""
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

TICKET_FIELDS = [
    "ticket_id", "category", "sub_category", "opened", "reported_by", "contact_info",
    "priority", "building", "location", "impacted", "description", "detectedBy",
    "time_detected", "root_cause", "actions_taken", "status", "assigned_to",
    "resolution_summary", "resolution_time", "duration", "post_review", "attachments",
    "escalation_history", "closed", "sla_breach",
]

HISTORY_FIELDS = ["ticket_id", "timestamp", "action", "changes", "editor"]

_TOKEN = re.compile(r'("([^"]|"")*"|[^,]+)')
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def quote(value) -> str:
    if value is None:
        value = ""
    text = str(value)
    if _LINE_BREAK.search(text):
        logger.warning("Flattening line breaks in value starting %r", text[:40])
        text = _LINE_BREAK.sub(" ", text)
    return '"' + text.replace('"', '""') + '"'


def unquote(token: str) -> str:
    if token.startswith('"'):
        token = token[1:]
    if token.endswith('"'):
        token = token[:-1]
    return token.replace('""', '"')


def split_line(line: str) -> List[str]:
    return [unquote(match.group(0)) for match in _TOKEN.finditer(line)]


def header_line(fields: Sequence[str]) -> str:
    return ",".join(fields)


def encode_row(record: Mapping[str, object], fields: Sequence[str]) -> str:
    """Encode one record as a line (without the trailing newline)."""
    return ",".join(quote(record.get(name, "")) for name in fields)


def encode(records: Iterable[Mapping[str, object]], fields: Optional[Sequence[str]] = None) -> str:
    records = list(records)
    if fields is None:
        fields = list(records[0].keys()) if records else TICKET_FIELDS
    lines = [header_line(fields)]
    lines.extend(encode_row(record, fields) for record in records)
    return "\n".join(lines) + "\n"


def decode(text: str) -> List[Dict[str, str]]:
    lines = [line for line in _LINE_BREAK.split(text) if line.strip()]
    if not lines:
        return []
    header = [name.strip().replace('"', "") for name in lines[0].split(",")]
    records = []
    for line in lines[1:]:
        columns = split_line(line)
        records.append(
            {name: columns[index] if index < len(columns) else "" for index, name in enumerate(header)}
        )
    return records
