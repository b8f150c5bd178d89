"""Checkout error taxonomy.

Client-correctable problems derive from ``ValueError`` so the HTTP layer can keep
mapping ``ValueError`` to a 400 the way the cart endpoints always did.
"""
from typing import List, Optional


class ValidationError(ValueError):
    http_status = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


class EmptyCartError(ValidationError):
    def __init__(self) -> None:
        super().__init__("Le panier est vide")


class AddressValidationError(ValidationError):
    pass


class CouponError(ValidationError):
    kind = "invalid"


class CouponNotFoundError(CouponError):
    kind = "not_found"

    def __init__(self) -> None:
        super().__init__("Code promo invalide")


class CouponInactiveError(CouponError):
    kind = "inactive"

    def __init__(self) -> None:
        super().__init__("Ce code promo n'est plus actif")


class CouponNotYetValidError(CouponError):
    kind = "not_yet_valid"

    def __init__(self) -> None:
        super().__init__("Ce code promo n'est pas encore valable")


class CouponExpiredError(CouponError):
    kind = "expired"

    def __init__(self) -> None:
        super().__init__("Ce code promo a expiré")


class CouponBelowMinimumError(CouponError):
    kind = "below_minimum"

    def __init__(self, minimum) -> None:
        super().__init__(f"Montant minimum de commande non atteint (minimum: {minimum:.2f}€)")
        self.minimum = minimum


class ExternalDependencyError(RuntimeError):
    """A collaborator over the network (geocoder) did not answer usably."""


class PersistenceError(RuntimeError):
    http_status = 500
