"""Exceptions raised by the ticket store and the HTTP facade."""


class TicketingError(Exception):
    """Base exception for the ticketing service"""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class TicketNotFound(TicketingError):
    """No row carries the requested ticket_id"""
    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found", "NOT_FOUND", 404)


class MalformedPayload(TicketingError):
    """The JSON document embedded in a multipart request could not be decoded"""
    def __init__(self, message: str):
        super().__init__(message, "MALFORMED_PAYLOAD", 400)


class StorageIOFailure(TicketingError):
    """Reading or writing a backing table failed"""
    def __init__(self, message: str):
        super().__init__(message, "STORAGE_IO_FAILURE", 500)
