from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from app.api.deps import get_store, get_upload_storage
from app.api.payload import read_ticket_payload
from app.core.lifecycle import TicketLifecycle
from app.schemas.ticket import DeleteResponse, HistoryEntryResponse, TicketResponse, TicketStatusEnum
from app.services.documents import render_ticket_document
from app.services.ticket_store import TicketStore
from app.services.uploads import UploadStorage

router = APIRouter(prefix="/tickets", tags=["Tickets"])

lifecycle = TicketLifecycle()


async def _save_uploads(uploads: UploadStorage, files: List[UploadFile]) -> List[str]:
    names = []
    for upload in files:
        names.append(await run_in_threadpool(uploads.save, upload.filename, upload.file))
    return names


@router.get("/export/all")
def export_tickets(store: TicketStore = Depends(get_store)):
    """
    Download the whole ticket table as CSV.
    """
    return Response(
        content=store.export_table(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="tickets.csv"'},
    )


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: Request,
    store: TicketStore = Depends(get_store),
    uploads: UploadStorage = Depends(get_upload_storage),
):
    """
    Create a ticket from JSON, form or multipart input.
    A ticket_id is generated from category, building and date when none is supplied.
    """
    payload, files = await read_ticket_payload(request)
    names = await _save_uploads(uploads, files)
    return await run_in_threadpool(store.create_ticket, payload, names, payload.get("editor"))


@router.get("", response_model=List[TicketResponse])
def get_tickets(
    status: Optional[TicketStatusEnum] = None,
    building: Optional[str] = None,
    store: TicketStore = Depends(get_store),
):
    """
    Retrieve all tickets, oldest first, with optional filtering.
    """
    tickets = store.list_tickets()
    if status is not None:
        tickets = [ticket for ticket in tickets if ticket["status"] == status.value]
    if building is not None:
        tickets = [ticket for ticket in tickets if ticket["building"] == building]
    return tickets


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(ticket_id: str, store: TicketStore = Depends(get_store)):
    return store.get_ticket(ticket_id)


@router.get("/{ticket_id}/history", response_model=List[HistoryEntryResponse])
def get_ticket_history(ticket_id: str, store: TicketStore = Depends(get_store)):
    """
    Audit trail of a ticket in the order the changes were made.
    """
    return store.get_history(ticket_id)


@router.get("/{ticket_id}/download")
def download_ticket(ticket_id: str, store: TicketStore = Depends(get_store)):
    ticket = store.get_ticket(ticket_id)
    return Response(
        content=render_ticket_document(ticket),
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{ticket_id}.txt"'},
    )


@router.put("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    request: Request,
    store: TicketStore = Depends(get_store),
    uploads: UploadStorage = Depends(get_upload_storage),
):
    """
    Partially update a ticket. Only the supplied fields change.
    Entering a new status fills in the closed timestamp, duration and cleared
    resolution fields unless the caller already sent them.
    """
    payload, files = await read_ticket_payload(request)
    # 404 before any upload is written
    await run_in_threadpool(store.get_ticket, ticket_id)
    names = await _save_uploads(uploads, files)
    return await run_in_threadpool(
        store.update_ticket, ticket_id, payload, names, payload.get("editor"), lifecycle.apply
    )


@router.delete("/{ticket_id}", response_model=DeleteResponse)
def delete_ticket(ticket_id: str, store: TicketStore = Depends(get_store)):
    store.delete_ticket(ticket_id)
    return DeleteResponse(ticket_id=ticket_id)
