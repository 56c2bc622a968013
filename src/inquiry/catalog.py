"""Normalization of manual entries and imported rows into InquiryProducts."""

import uuid
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .models import InquiryProduct, Urgency, coerce_urgency

PENDING_LABEL = "pending confirmation"
DEFAULT_CATEGORY = "electronic components"

# Bulk inquiry form vocabulary
_URGENCY_ALIASES = {"normal": "standard", "asap": "very_urgent"}

_CAMEL_CASE_KEYS = {
    "productId": "product_id",
    "targetPrice": "target_price",
    "partNumber": "model",
    "part_number": "model",
    "notes": "description",
}


def _new_product_id() -> str:
    return f"product_{uuid.uuid4().hex[:12]}"


def coerce_quantity(value: Any) -> int:
    """Integer quantity >= 1; anything unparseable, fractional or below 1 becomes 1.

    Whole-number floats such as ``5.0`` or ``"5.0"`` are accepted.
    """
    if isinstance(value, bool):
        return 1
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return 1
    if not number.is_integer():
        return 1
    quantity = int(number)
    return quantity if quantity >= 1 else 1


class InquiryProductCatalog:
    """Builds canonical InquiryProduct records from loose input."""

    def __init__(
        self,
        id_factory: Optional[Callable[[], str]] = None,
        pending_label: str = PENDING_LABEL,
        default_category: str = DEFAULT_CATEGORY,
    ):
        self.id_factory = id_factory or _new_product_id
        self.pending_label = pending_label
        self.default_category = default_category

    def from_manual_entry(
        self,
        part_number: str,
        quantity: Any = 1,
        product_id: Optional[str] = None,
        **fields: Any,
    ) -> InquiryProduct:
        """Quick-inquiry style entry: a part number and a quantity."""
        part_number = (part_number or "").strip()
        if not part_number:
            raise ValueError("part_number is required")

        brand = fields.pop("brand", None) or self.pending_label
        manufacturer = fields.pop("manufacturer", None) or brand
        return self.normalize(
            {
                "product_id": product_id or part_number,
                "name": fields.pop("name", None) or part_number,
                "model": part_number,
                "brand": brand,
                "manufacturer": manufacturer,
                "category": fields.pop("category", None) or self.default_category,
                "quantity": quantity,
                **fields,
            }
        )

    def from_row(
        self,
        part_number: str,
        quantity: int,
        manufacturer: Optional[str] = None,
        category: Optional[str] = None,
        name: Optional[str] = None,
        notes: Optional[str] = None,
        specifications: Optional[Dict[str, str]] = None,
    ) -> InquiryProduct:
        """Product for one accepted BOM row."""
        maker = manufacturer or self.pending_label
        return InquiryProduct(
            id=self.id_factory(),
            product_id=part_number,
            name=name or part_number,
            model=part_number,
            brand=maker,
            manufacturer=maker,
            category=category or self.default_category,
            quantity=quantity,
            description=notes or None,
            urgency="standard",
            specifications=dict(specifications or {}),
        )

    def normalize(self, product: Union[InquiryProduct, Mapping[str, Any]]) -> InquiryProduct:
        """Coerce a product or raw mapping into a valid InquiryProduct."""
        if isinstance(product, InquiryProduct):
            raw = product.model_dump()
        else:
            raw = {}
            for key, value in product.items():
                raw[_CAMEL_CASE_KEYS.get(key, key)] = value

        if not raw.get("id"):
            raw["id"] = self.id_factory()
        raw["quantity"] = coerce_quantity(raw.get("quantity", 1))

        urgency = raw.get("urgency") or "standard"
        if not isinstance(urgency, Urgency):
            urgency = str(urgency).strip().lower()
            urgency = _URGENCY_ALIASES.get(urgency, urgency)
        raw["urgency"] = coerce_urgency(urgency)

        specs = raw.get("specifications") or {}
        raw["specifications"] = {str(k): str(v) for k, v in specs.items()}

        if raw.get("target_price") in ("", None):
            raw["target_price"] = None

        raw["model"] = raw.get("model") or raw.get("product_id") or ""
        if not raw.get("name"):
            raw["name"] = raw["model"]

        return InquiryProduct.model_validate(raw)
