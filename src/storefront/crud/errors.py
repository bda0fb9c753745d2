"""Domain exceptions for deterministic error handling.

Every error here is recoverable by the caller; the operation that raised it
has already rolled its session back.
"""
from decimal import Decimal, InvalidOperation

import pydantic

from ..money import to_money


class StorefrontError(Exception):
    pass


class ValidationError(StorefrontError, ValueError):
    """Malformed input: bad quantity/price, unknown product, and so on."""


class NotFoundError(ValidationError):
    pass


class InsufficientStockError(ValidationError):
    pass


class InvalidTransitionError(StorefrontError, ValueError):
    pass


class OverpaymentError(StorefrontError):
    pass


class AlreadyReversedError(StorefrontError):
    """The order's reserved stock has already been given back."""


class RestrictedDeleteError(StorefrontError):
    """A row cannot be deleted while other rows still reference it."""


class ConcurrentUpdateError(StorefrontError):
    """Another session changed the order between our read and our write; retry."""


def validate_amount(value, name: str = "amount") -> Decimal:
    """Parse a caller-supplied money value, rejecting garbage and non-finite numbers."""
    try:
        amount = to_money(value)
        if not amount.is_finite():
            raise InvalidOperation
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{name} must be a finite decimal amount, got {value!r}") from None
    return amount


def validate_input(schema_cls, data):
    """Coerce ``data`` (schema instance or mapping) into ``schema_cls``.

    Pydantic failures surface as our ValidationError, chained to the original.
    """
    if isinstance(data, schema_cls):
        return data
    try:
        return schema_cls.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(str(exc)) from exc
