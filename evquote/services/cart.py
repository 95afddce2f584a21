from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

from evquote.constants import DEFAULT_COLOR
from evquote.models import (
    Accessory,
    AccessoryLine,
    CartLine,
    Vehicle,
    VehicleLine,
    line_key,
    line_total,
    with_quantity,
)

logger = logging.getLogger(__name__)


class CatalogLookup(Protocol):
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]: ...

    def get_accessory(self, accessory_id: str) -> Optional[Accessory]: ...


def resolve_color(vehicle: Vehicle, color: Optional[str] = None) -> Optional[str]:
    """
    Supplied color, else the first listed color, else the placeholder.
    None when the supplied color is not one the vehicle comes in.
    """
    wanted = (color or "").strip()
    if not vehicle.colors:
        return wanted or DEFAULT_COLOR
    if not wanted:
        return vehicle.colors[0]
    return wanted if wanted in vehicle.colors else None


class Cart:
    """
    Ordered quote lines. Same vehicle+color or same accessory merges into
    the existing line (quantity += 1) without moving it.
    Reads the catalog to take snapshots, never writes to it.
    """

    def __init__(self, catalog: CatalogLookup):
        self.catalog = catalog
        self._lines: List[CartLine] = []

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def clear(self) -> None:
        self._lines.clear()

    def _merge_or_append(self, new_line: CartLine) -> int:
        key = line_key(new_line)
        for idx, line in enumerate(self._lines):
            if line_key(line) == key:
                self._lines[idx] = with_quantity(line, line.quantity + 1)
                return idx
        self._lines.append(new_line)
        return len(self._lines) - 1

    def add_vehicle(self, vehicle_id: str, color: Optional[str] = None) -> Optional[int]:
        vehicle = self.catalog.get_vehicle(vehicle_id)
        if vehicle is None:
            logger.info("add_vehicle: unknown id %r", vehicle_id)
            return None
        resolved = resolve_color(vehicle, color)
        if resolved is None:
            logger.info("add_vehicle: %s has no color %r", vehicle.model, color)
            return None
        return self._merge_or_append(VehicleLine(vehicle=vehicle, color=resolved, quantity=1))

    def add_accessory(self, accessory_id: str) -> Optional[int]:
        accessory = self.catalog.get_accessory(accessory_id)
        if accessory is None:
            logger.info("add_accessory: unknown id %r", accessory_id)
            return None
        return self._merge_or_append(AccessoryLine(accessory=accessory, quantity=1))

    def _valid_index(self, index: int) -> bool:
        return isinstance(index, int) and 0 <= index < len(self._lines)

    def remove_line(self, index: int) -> bool:
        if not self._valid_index(index):
            logger.warning("remove_line: index %r out of range (%d lines)", index, len(self._lines))
            return False
        del self._lines[index]
        return True

    def set_quantity(self, index: int, qty: int) -> bool:
        if qty < 1:
            return False
        if not self._valid_index(index):
            logger.warning("set_quantity: index %r out of range (%d lines)", index, len(self._lines))
            return False
        self._lines[index] = with_quantity(self._lines[index], int(qty))
        return True

    def total(self) -> float:
        return sum(line_total(line) for line in self._lines)
