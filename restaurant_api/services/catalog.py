"""
Menu field parsing.

Menu writes arrive either as JSON or as multipart form fields (when a
photo is attached), so every value may be a string. These helpers turn
the raw mapping into MenuItemCreate / MenuItemUpdate.
"""

import math
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from restaurant_api.exceptions import InvalidMenuItem
from restaurant_api.schemas import MenuItemCreate, MenuItemUpdate

TEXT_FIELDS = ("category", "description")


def parse_price(value: Any) -> Optional[float]:
    """Return a finite, non-negative price or None when ``value`` is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def parse_tags(value: Any) -> list[str]:
    """Accept a list of strings or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = [str(v) for v in value]
    else:
        raise InvalidMenuItem("tags must be a list or a comma-separated string")
    return [p.strip() for p in parts if p.strip()]


def build_new_item(fields: Mapping[str, Any]) -> MenuItemCreate:
    name = fields.get("name")
    price = parse_price(fields.get("price"))
    if not isinstance(name, str) or not name.strip() or price is None:
        raise InvalidMenuItem("name and price are required")

    data: dict[str, Any] = {"name": name.strip(), "price": price}
    for key in TEXT_FIELDS:
        if fields.get(key) is not None:
            data[key] = str(fields[key])
    if "tags" in fields:
        data["tags"] = parse_tags(fields["tags"])

    try:
        return MenuItemCreate(**data)
    except ValidationError as e:
        raise InvalidMenuItem(_first_error(e))


def build_update(fields: Mapping[str, Any]) -> MenuItemUpdate:
    """
    Only supplied fields change. An unparseable price is ignored and the
    old price stays.
    """
    data: dict[str, Any] = {}

    if fields.get("name") is not None:
        name = str(fields["name"]).strip()
        if not name:
            raise InvalidMenuItem("name cannot be blank")
        data["name"] = name
    if "price" in fields:
        price = parse_price(fields["price"])
        if price is not None:
            data["price"] = price
    for key in TEXT_FIELDS:
        if fields.get(key) is not None:
            data[key] = str(fields[key])
    if "tags" in fields:
        data["tags"] = parse_tags(fields["tags"])

    try:
        return MenuItemUpdate(**data)
    except ValidationError as e:
        raise InvalidMenuItem(_first_error(e))


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
