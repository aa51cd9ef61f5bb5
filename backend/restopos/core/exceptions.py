"""Domain error taxonomy.

Services raise these; the handlers registered in ``restopos.main`` turn them
into ``{"detail": ..., "code": ...}`` responses with the matching status.
"""


class PosError(Exception):
    """Base class for POS domain failures."""

    status_code = 500
    code = "pos_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PosError):
    """Malformed input: empty name, non-positive capacity or quantity, etc."""

    status_code = 400
    code = "validation_error"


class NotFoundError(PosError):
    """Raised when a referenced record does not exist."""

    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        message = f"{entity} not found" if entity_id is None else f"{entity} not found: {entity_id}"
        super().__init__(message)


class ConflictError(PosError):
    """The request is incompatible with the current table or order state."""

    status_code = 409
    code = "conflict"


class ConcurrencyConflictError(ConflictError):
    """A version check failed: the record changed since the caller read it."""

    code = "concurrency_conflict"

    def __init__(self, entity: str, expected: int, current: int):
        self.entity = entity
        self.expected = expected
        self.current = current
        super().__init__(
            f"{entity} was modified by another terminal "
            f"(expected version {expected}, current {current}). Please refresh and try again."
        )


class InsufficientStockError(ValidationError):
    """An order needs more of an ingredient than is on hand."""

    code = "insufficient_stock"

    def __init__(self, ingredient: str, needed, available, unit: str):
        self.ingredient = ingredient
        self.needed = needed
        self.available = available
        self.unit = unit
        super().__init__(
            f"Insufficient stock for '{ingredient}': need {needed} {unit}, have {available} {unit}"
        )
