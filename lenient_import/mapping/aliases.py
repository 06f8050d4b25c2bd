from __future__ import annotations

"""Header alias dictionary for purchase-order imports.

Canonical field -> known header spellings (compared lower-cased). Order
matters: when a header appears under several fields, the first field in
this table wins (e.g. "foil" -> foil, "lot" -> batchNo).
"""

__all__ = [
    "FIELD_ALIASES",
    "merge_aliases",
]

FIELD_ALIASES: dict[str, list[str]] = {
    # Natural key
    "poNo": ["po no", "po number", "pono", "order no", "order number", "po no."],
    "gstNo": ["gstno", "gst no", "gst number", "gst", "tax id", "gstin"],

    # Dates
    "poDate": ["po date", "po datetime", "order date"],
    "dispatchDate": ["dispatch date", "shipping date", "delivery date"],
    "expiry": ["expiry", "expiry date", "manufacture date", "mfd", "expiration"],
    "foilPoDate": ["foil po date"],
    "foilBillDate": ["foil bill date"],
    "cartonPoDate": ["carton po date"],
    "cartonBillDate": ["carton bill date"],
    "packingDate": ["packing date"],
    "invoiceDate": ["invoice date"],

    # Quantities
    "poQty": ["po qty", "quantity", "qty", "order qty"],
    "batchQty": ["batch qty", "batchqty", "batch quantity"],
    "foilQuantity": ["foil quantity", "foilquantity"],
    "cartonQuantity": ["carton quantity", "cartonquantity"],
    "qtyPacked": ["qty packed", "qtypacked", "quantity packed"],
    "noOfShippers": ["no of shippers", "shippers", "no. of shippers"],
    "foilQuantityOrdered": ["foil quantity ordered", "foilquantityordered"],
    "cartonQuantityOrdered": ["carton quantity ordered", "cartonquantityordered"],
    "changePart": ["change part", "changepart"],
    "cyc": ["cyc", "cycle"],

    # Prices & amounts
    "poRate": ["po rate", "rate", "price", "unit price", "cost"],
    "amount": ["amount", "total", "total amount"],
    "mrp": ["mrp", "list price", "sale price"],
    "advance": ["advance", "advance amount"],

    # Product & party
    "brandName": ["brand name", "brand", "product brand"],
    "partyName": ["party name", "party", "customer", "company", "vendor"],
    "batchNo": ["batch no", "batch number", "batch", "lot"],
    "paymentTerms": ["payment terms", "terms", "payment condition"],
    "orderThrough": ["order through", "ordered through", "via"],

    # Charges, location, free text
    "invCha": ["inv. cha.", "invoice charge", "inv charge", "packaging charge"],
    "cylChar": ["cyl. char.", "cylinder charge"],
    "address": ["address", "location", "place", "delivery address"],
    "composition": ["composition", "formula", "ingredient"],
    "notes": ["notes", "remarks", "comments"],

    # Status & tracking
    "rmStatus": ["rm status", "raw material status", "status"],
    "section": ["section", "category", "type"],
    "specialRequirements": ["special requirements", "special req", "requirements"],
    "isRFD": ["rfd", "is rfd"],
    "isCancelled": ["cancelled", "canceled", "is cancelled"],

    # Tablet / bottle specs
    "tabletCapsuleDrySyrupBottle": [
        "tablet capsule dry syrup bottle",
        "tablet/capsule/dry syrup/bottle",
        "tablet capsule",
    ],
    "roundOvalTablet": ["round oval tablet", "round/oval tablet", "tablet shape"],
    "tabletColour": ["tablet colour", "tablet color", "colour"],
    "aluAluBlisterStripBottle": [
        "alu-alu/blister/strip/bottle",
        "alu alu blister strip bottle",
        "alu-alu",
        "blister",
        "pack type",
        "packaging",
    ],

    # Packing & design
    "packStyle": ["pack style", "packing style", "pack format"],
    "productNewOld": ["product new/old", "product newold", "product"],
    "qaObservations": ["qa observations", "qa obs", "quality observations"],
    "pvcColourBase": ["pvc colour base", "pvc color", "pvc"],
    "foil": ["foil", "foil type"],
    "lotNo": ["lot no", "lot number", "lot"],
    "foilSize": ["foil size", "foil"],
    "foilPoVendor": ["foil po vendor", "foil vendor"],
    "cartonPoVendor": ["carton po vendor", "carton vendor"],
    "design": ["design", "design file", "artwork"],
    "invoiceNo": ["invoice no", "invoice number", "invoice", "invoice no."],
}


def merge_aliases(
    extra: dict[str, list[str]] | None,
    base: dict[str, list[str]] | None = None,
) -> dict[str, list[str]]:
    """Return a new alias table with extra synonyms appended per field.

    Fields unknown to the base table are appended at the end, so they never
    shadow a built-in field.
    """
    merged = {name: list(aliases) for name, aliases in (base or FIELD_ALIASES).items()}
    for name, aliases in (extra or {}).items():
        bucket = merged.setdefault(name, [])
        for alias in aliases:
            lowered = alias.lower().strip()
            if lowered and lowered not in bucket:
                bucket.append(lowered)
    return merged
