"""Domain exceptions shared by services, the HTTP API and the MCP server."""
from __future__ import annotations


class BoardError(Exception):
    """Base class for errors raised by board services."""
    status_code = 400


class NotFoundError(BoardError):
    status_code = 404

    def __init__(self, label: str, entity_id: object):
        super().__init__(f"{label} {entity_id} not found")
        self.label = label
        self.entity_id = entity_id


class ValidationError(BoardError):
    status_code = 400


class ConflictError(BoardError):
    status_code = 409


class AuthenticationError(BoardError):
    status_code = 401


class PermissionDeniedError(BoardError):
    status_code = 403
