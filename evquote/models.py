from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Literal, Tuple, Union

from evquote.constants import KIND_ACCESSORY, KIND_VEHICLE


def dedupe(values: Iterable[str]) -> Tuple[str, ...]:
    """Strip, drop blanks and duplicates, keep first-seen order."""
    seen = []
    for v in values:
        t = str(v).strip()
        if t and t not in seen:
            seen.append(t)
    return tuple(seen)


@dataclass(frozen=True)
class Vehicle:
    id: str
    model: str
    name: str
    price: float = 0.0
    battery: Tuple[str, ...] = ()
    motor: str = ""
    brake_tire: str = ""
    seat_dash: str = ""
    control_func: str = ""
    additional: str = ""
    colors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Accessory:
    id: str
    category: str  # battery / charger
    voltage: str
    capacity: str
    price: float = 0.0


CatalogRecord = Union[Vehicle, Accessory]


@dataclass(frozen=True)
class VehicleLine:
    vehicle: Vehicle
    color: str
    quantity: int = 1
    kind: Literal["vehicle"] = field(default=KIND_VEHICLE, init=False)

    @property
    def item_id(self) -> str:
        return self.vehicle.id

    @property
    def price(self) -> float:
        return self.vehicle.price


@dataclass(frozen=True)
class AccessoryLine:
    accessory: Accessory
    quantity: int = 1
    kind: Literal["accessory"] = field(default=KIND_ACCESSORY, init=False)

    @property
    def item_id(self) -> str:
        return self.accessory.id

    @property
    def price(self) -> float:
        return self.accessory.price


CartLine = Union[VehicleLine, AccessoryLine]


def line_key(line: CartLine) -> tuple:
    if line.kind == KIND_VEHICLE:
        return (KIND_VEHICLE, line.vehicle.id, line.color)
    return (KIND_ACCESSORY, line.accessory.id)


def with_quantity(line: CartLine, quantity: int) -> CartLine:
    return replace(line, quantity=quantity)


def line_total(line: CartLine) -> float:
    return line.price * line.quantity


def record_kind(record: CatalogRecord) -> str:
    return KIND_ACCESSORY if isinstance(record, Accessory) else KIND_VEHICLE
