from __future__ import annotations

import math
import re
from dataclasses import replace
from typing import List

from evquote.constants import ACCESSORY_CATEGORIES
from evquote.models import Accessory, Vehicle, dedupe


class ValidationError(ValueError):
    """Bad catalog input. Raised before anything is written."""


def require_non_negative(v: float, name: str = "value") -> float:
    if v is None or not math.isfinite(v):
        raise ValidationError(f"{name} must be a finite number")
    if v < 0:
        raise ValidationError(f"{name} must be >= 0")
    return float(v)


def require_text(v: str, name: str) -> str:
    t = (v or "").strip()
    if not t:
        raise ValidationError(f"{name} is required")
    return t


def parse_price(text: str) -> float:
    raw = str(text or "").strip().replace(",", ".")
    if not raw:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"price must be a number, got {text!r}") from None
    if not math.isfinite(value):
        raise ValidationError(f"price must be a finite number, got {text!r}")
    return value


def parse_list(text: str) -> List[str]:
    return list(dedupe(re.split(r"[,;，；\n]", text or "")))


def validate_vehicle(v: Vehicle) -> Vehicle:
    return replace(
        v,
        model=require_text(v.model, "model"),
        name=require_text(v.name, "name"),
        price=require_non_negative(v.price, "price"),
        battery=dedupe(v.battery),
        colors=dedupe(v.colors),
        motor=(v.motor or "").strip(),
        brake_tire=(v.brake_tire or "").strip(),
        seat_dash=(v.seat_dash or "").strip(),
        control_func=(v.control_func or "").strip(),
        additional=(v.additional or "").strip(),
    )


def validate_accessory(a: Accessory) -> Accessory:
    if a.category not in ACCESSORY_CATEGORIES:
        raise ValidationError(f"category must be one of {', '.join(ACCESSORY_CATEGORIES)}")
    return replace(
        a,
        voltage=require_text(a.voltage, "voltage"),
        capacity=require_text(a.capacity, "capacity"),
        price=require_non_negative(a.price, "price"),
    )
