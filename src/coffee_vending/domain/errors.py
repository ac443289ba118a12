"""Error taxonomy surfaced to API callers."""

from collections.abc import Mapping


class VendingError(Exception):
    """Base error carrying a message, optional details and an HTTP status."""

    http_status = 500

    def __init__(
        self, message: str, details: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"message": self.message}
        if self.details:
            payload.update(self.details)
        return payload

    def __str__(self) -> str:
        return self.message


class NotFoundError(VendingError):
    """A machine, recipe, ingredient or order does not exist."""

    http_status = 404


class ValidationError(VendingError):
    """The request is well-formed but not acceptable."""

    http_status = 400


class ConflictError(VendingError):
    """The change conflicts with existing data."""

    http_status = 409


class InsufficientInventoryError(ConflictError):
    """A machine lacks stock for one or more required ingredients."""

    def __init__(
        self, missing_ingredient_ids: list[str], message: str | None = None
    ) -> None:
        super().__init__(
            message or "Machine is missing required ingredients",
            {"missingIngredients": list(missing_ingredient_ids)},
        )
        self.missing_ingredient_ids = list(missing_ingredient_ids)


class DeductionError(VendingError):
    """An inventory write failed while finalizing an order."""

    http_status = 500


class FinalizationError(VendingError):
    """Stock was deducted but the rest of finalization failed."""

    http_status = 500
