"""
Taxonomie des erreurs du moteur de stock.

Chaque erreur porte un `code` stable et un `context` exploitable par l'appelant
(ex.: disponible vs demandé). La couche HTTP traduit ces erreurs en statut.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    code = "ledger_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidInput(LedgerError):
    code = "invalid_input"


class NotFound(LedgerError):
    code = "not_found"


class ProductNotFound(NotFound):
    code = "product_not_found"

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product {product_id} not found", product_id=product_id)
        self.product_id = product_id


class SchoolNotFound(NotFound):
    code = "school_not_found"

    def __init__(self, school_id: int) -> None:
        super().__init__(f"School {school_id} not found", school_id=school_id)
        self.school_id = school_id


class TransferNotFound(NotFound):
    code = "transfer_not_found"

    def __init__(self, transfer_id: int) -> None:
        super().__init__(f"Transfer {transfer_id} not found", transfer_id=transfer_id)
        self.transfer_id = transfer_id


class NotificationNotFound(NotFound):
    code = "notification_not_found"

    def __init__(self, notification_id: int) -> None:
        super().__init__(f"Notification {notification_id} not found", notification_id=notification_id)
        self.notification_id = notification_id


class InsufficientStock(LedgerError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, product_name: str, available: Decimal, requested: Decimal) -> None:
        super().__init__(
            f'Insufficient stock for "{product_name}" (available={available}, requested={requested})',
            product_id=product_id,
            product_name=product_name,
            available=available,
            requested=requested,
        )
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested


class InsufficientSchoolStock(InsufficientStock):
    code = "insufficient_school_stock"

    def __init__(
        self,
        school_id: int,
        product_id: int,
        product_name: str,
        available: Decimal,
        requested: Decimal,
    ) -> None:
        super().__init__(product_id, product_name, available, requested)
        self.school_id = school_id
        self.context["school_id"] = school_id


class NothingToConfirm(LedgerError):
    code = "nothing_to_confirm"


class AlreadyResolved(LedgerError):
    code = "already_resolved"


class InvalidPayload(LedgerError):
    code = "invalid_payload"


class Forbidden(LedgerError):
    code = "forbidden"


class StorageFailure(LedgerError):
    code = "storage_failure"

    def __init__(self, message: str = "Internal storage error") -> None:
        super().__init__(message)
