import enum
from dataclasses import dataclass
from uuid import UUID

from app.services.errors import OfferValidationError


class OfferKind(str, enum.Enum):
    BASE = "base"
    VARIANT = "variant"


@dataclass(frozen=True)
class OfferRef:
    """Tagged offer identifier, rendered as ``base:<uuid>`` or ``variant:<uuid>``"""
    kind: OfferKind
    id: UUID

    @classmethod
    def base(cls, offer_id: UUID) -> "OfferRef":
        return cls(OfferKind.BASE, offer_id)

    @classmethod
    def variant(cls, offer_id: UUID) -> "OfferRef":
        return cls(OfferKind.VARIANT, offer_id)

    @classmethod
    def parse(cls, raw: str) -> "OfferRef":
        """Parse a prefixed offer id. The kind is never inferred from a bare id."""
        text = str(raw or "").strip()
        prefix, sep, rest = text.partition(":")
        if not sep:
            raise OfferValidationError(
                f"Offer id '{text}' must be prefixed with 'base:' or 'variant:'"
            )
        try:
            kind = OfferKind(prefix.lower())
        except ValueError:
            raise OfferValidationError(f"Unknown offer kind '{prefix}'")
        try:
            offer_id = UUID(rest)
        except ValueError:
            raise OfferValidationError(f"Malformed offer id '{rest}'")
        return cls(kind, offer_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True)
class ProductScope:
    """Covers a product together with every variant and offer that belongs to it"""
    product_id: UUID
