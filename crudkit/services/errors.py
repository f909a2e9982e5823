"""Error taxonomy shared by the resource engine and its transports.

``InvalidInput`` is always caller-correctable. ``NotFound`` is raised when a
delete affects no rows. ``StoreFailure`` wraps any error raised by the store;
the original exception stays reachable through ``__cause__``.

Malformed filter or order input is never an error: offending clauses are
dropped before they reach the store.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    status_code = 404


class StoreFailure(ServiceError):
    status_code = 500
