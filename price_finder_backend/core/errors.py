"""Exceptions raised by the search, resolution and storage layers."""

GENERIC_ERROR_MESSAGE = "Error processing your request. Please try again later."


class PriceFinderError(Exception):
    """Base class for errors that map to a client-facing response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidParameterError(PriceFinderError):
    """A request parameter failed validation."""

    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class ResolutionError(PriceFinderError):
    """A postal code could not be mapped to coordinates."""

    status_code = 400


class NotFoundError(PriceFinderError):
    """A referenced store (or other entity) does not exist."""

    status_code = 404


class ConflictError(PriceFinderError):
    """A uniqueness constraint would be violated."""

    status_code = 409
