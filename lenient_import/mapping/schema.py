from __future__ import annotations

from dataclasses import dataclass

"""Purchase-order target schema.

PO_FIELD_SCHEMA drives the row validator (type + max length per field).
RECOGNIZED_FIELDS is the wider set of columns the persistence layer accepts;
any other key of a mapped row ends up in the raw_imported_data bucket.

Quantities, rates and amounts that users type with units or currency
("100 boxes", "₹1,200") are kept as strings on purpose. Only the counters
that the purchase-order table stores as numbers are typed int/float.
"""

__all__ = [
    "FieldSpec",
    "PO_FIELD_SCHEMA",
    "RECOGNIZED_FIELDS",
    "SKIP_FIELDS",
]


@dataclass(frozen=True)
class FieldSpec:
    type: str  # string | date | int | float | boolean
    max_length: int | None = None


def _s(max_length: int | None = None) -> FieldSpec:
    return FieldSpec("string", max_length)


_DATE = FieldSpec("date")
_INT = FieldSpec("int")
_FLOAT = FieldSpec("float")
_BOOL = FieldSpec("boolean")

PO_FIELD_SCHEMA: dict[str, FieldSpec] = {
    "poNo": _s(50),
    "gstNo": _s(),

    "poDate": _DATE,
    "dispatchDate": _DATE,
    "expiry": _DATE,
    "foilPoDate": _DATE,
    "foilBillDate": _DATE,
    "cartonPoDate": _DATE,
    "cartonBillDate": _DATE,
    "packingDate": _DATE,
    "invoiceDate": _DATE,

    "poQty": _s(),
    "batchQty": _s(),
    "poRate": _s(),
    "amount": _s(),
    "mrp": _s(),

    "foilQuantity": _INT,
    "cartonQuantity": _INT,
    "qtyPacked": _INT,
    "noOfShippers": _INT,
    "changePart": _INT,
    "cyc": _INT,
    "foilQuantityOrdered": _INT,
    "cartonQuantityOrdered": _INT,
    "advance": _FLOAT,

    "isRFD": _BOOL,
    "isCancelled": _BOOL,

    "brandName": _s(100),
    "partyName": _s(100),
    "batchNo": _s(50),
    "paymentTerms": _s(100),
    "invCha": _s(100),
    "cylChar": _s(100),
    "orderThrough": _s(100),
    "address": _s(500),
    "composition": _s(500),
    "notes": _s(1000),
    "rmStatus": _s(50),
    "section": _s(50),
    "specialRequirements": _s(500),
    "tabletCapsuleDrySyrupBottle": _s(100),
    "roundOvalTablet": _s(100),
    "tabletColour": _s(50),
    "aluAluBlisterStripBottle": _s(100),
    "packStyle": _s(100),
    "productNewOld": _s(50),
    "qaObservations": _s(500),
    "pvcColourBase": _s(50),
    "foil": _s(50),
    "lotNo": _s(50),
    "foilSize": _s(50),
    "foilPoVendor": _s(100),
    "cartonPoVendor": _s(100),
    "design": _s(500),
    "invoiceNo": _s(50),
}

# Columns of the purchase_orders table that a mapped row may write.
RECOGNIZED_FIELDS = frozenset(PO_FIELD_SCHEMA) | frozenset({
    "customerId",
    "overallStatus",
    "dispatchStatus",
    "productionStatus",
    "showStatus",
    "mdApproval",
    "accountsApproval",
    "designerApproval",
    "ppicApproval",
    "designerActions",
    "accountBills",
    "salesComments",
    "poDisputes",
})

# Spreadsheet artefacts: serial-number columns and unnamed columns.
SKIP_FIELDS = frozenset({"S. NO.", "__EMPTY", "__EMPTY_1"})
