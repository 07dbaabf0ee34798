"""Typed pointer from a ledger entry or batch to the business document behind it."""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Identifier, String

from inventory.domain import inventory


class DocumentKind(Enum):
    SALES_ORDER = "sales_order"
    PURCHASE_ORDER = "purchase_order"
    GOODS_RECEIPT = "goods_receipt"
    PRODUCTION_RUN = "production_run"
    SALES_RETURN = "sales_return"
    PURCHASE_RETURN = "purchase_return"
    STOCK_TRANSFER = "stock_transfer"
    INVENTORY_ADJUSTMENT = "inventory_adjustment"
    POS_SALE = "pos_sale"


@inventory.value_object
class DocumentReference:
    """The kind and identity of the document that caused a stock change."""

    kind = String(required=True, max_length=50, choices=DocumentKind)
    document_id = Identifier(required=True)

    @classmethod
    def to(cls, kind, document_id):
        if isinstance(kind, DocumentKind):
            kind = kind.value
        if not document_id:
            raise ValidationError({"reference": ["Document id is required"]})
        return cls(kind=kind, document_id=str(document_id))

    def __str__(self):
        return f"{self.kind}:{self.document_id}"


def reference_from(kind, document_id):
    """Build a reference from loose command/API fields, or None when absent."""
    if not kind and not document_id:
        return None
    if not kind:
        raise ValidationError({"reference_kind": ["Document kind is required with a document id"]})
    return DocumentReference.to(kind, document_id)
