"""Model-level validation utilities for data integrity.

Reusable validators that enforce business rules at the ORM level,
so invalid data never reaches the database regardless of which
route or service writes it.
"""


def non_negative(key: str, value):
    """Validate that a numeric value is >= 0."""
    if value is not None and value < 0:
        raise ValueError(f"{key} cannot be negative, got {value}")
    return value


def positive(key: str, value):
    """Validate that a numeric value is > 0."""
    if value is not None and value <= 0:
        raise ValueError(f"{key} must be positive, got {value}")
    return value


def one_of(key: str, value, allowed):
    """Validate that a value belongs to a fixed set of choices."""
    if value is not None and value not in allowed:
        raise ValueError(f"{key} must be one of {sorted(allowed)}, got {value!r}")
    return value
