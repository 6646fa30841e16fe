from fastapi import Request
from app.services.ticket_store import TicketStore
from app.services.uploads import UploadStorage


def get_store(request: Request) -> TicketStore:
    return request.app.state.store


def get_upload_storage(request: Request) -> UploadStorage:
    return request.app.state.uploads
