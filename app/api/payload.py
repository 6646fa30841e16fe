"""
Request body decoding for ticket writes.

The web client sends plain JSON, or multipart form data where the ticket is
either a JSON document in the `payload` field or spread over raw form fields,
with files under `attachments[]`.
"""
import json
import logging
from typing import Any, Dict, List, Tuple

from fastapi import Request
from starlette.datastructures import FormData, UploadFile

from app.core.errors import MalformedPayload

logger = logging.getLogger(__name__)

ATTACHMENT_KEYS = ("attachments[]", "attachments")
PAYLOAD_KEY = "payload"
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def decode_payload(raw: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise MalformedPayload(f"payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPayload("payload must be a JSON object")
    return data


def form_fields(form: FormData) -> Dict[str, Any]:
    """Text fields of a form; repeated keys and `name[]` keys become lists."""
    fields: Dict[str, Any] = {}
    for key in dict.fromkeys(form.keys()):
        if key in ATTACHMENT_KEYS:
            continue
        values = [value for value in form.getlist(key) if isinstance(value, str)]
        if not values:
            continue
        name = key[:-2] if key.endswith("[]") else key
        fields[name] = values if key.endswith("[]") or len(values) > 1 else values[0]
    return fields


def form_files(form: FormData) -> List[UploadFile]:
    return [
        value
        for key in ATTACHMENT_KEYS
        for value in form.getlist(key)
        if isinstance(value, UploadFile) and value.filename
    ]


async def read_ticket_payload(request: Request) -> Tuple[Dict[str, Any], List[UploadFile]]:
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields = form_fields(form)
        files = form_files(form)
        raw_payload = form.get(PAYLOAD_KEY)
        if isinstance(raw_payload, str):
            try:
                return decode_payload(raw_payload), files
            except MalformedPayload as e:
                logger.warning("%s; falling back to raw form fields", e.message)
        return fields, files

    body = await request.body()
    if not body.strip():
        return {}, []
    try:
        data = json.loads(body)
    except ValueError:
        raise MalformedPayload("Malformed JSON body")
    if not isinstance(data, dict):
        raise MalformedPayload("Ticket body must be a JSON object")
    return data, []
