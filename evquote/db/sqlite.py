from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from evquote.constants import KIND_ACCESSORY, KIND_VEHICLE
from evquote.models import Accessory, CatalogRecord, Vehicle, dedupe
from evquote.utils.validators import ValidationError, validate_accessory, validate_vehicle

logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.sql")
LOGO_KEY = "logo"

# camelCase keys of the old browser export -> our fields
_LEGACY_KEYS = {
    "brakeTire": "brake_tire",
    "seatDash": "seat_dash",
    "controlFunc": "control_func",
}


def _vehicle_from_row(r: sqlite3.Row) -> Vehicle:
    return Vehicle(
        id=r["id"],
        model=r["model"],
        name=r["name"],
        price=float(r["price"]),
        battery=tuple(json.loads(r["battery"] or "[]")),
        motor=r["motor"],
        brake_tire=r["brake_tire"],
        seat_dash=r["seat_dash"],
        control_func=r["control_func"],
        additional=r["additional"],
        colors=tuple(json.loads(r["colors"] or "[]")),
    )


def _accessory_from_row(r: sqlite3.Row) -> Accessory:
    return Accessory(
        id=r["id"],
        category=r["category"],
        voltage=r["voltage"],
        capacity=r["capacity"],
        price=float(r["price"]),
    )


def _like(search: Optional[str]) -> Optional[str]:
    t = (search or "").strip().lower()
    return f"%{t}%" if t else None


def vehicle_from_legacy(raw: Dict[str, Any]) -> Vehicle:
    """
    Old browser records: colors may be a comma separated string,
    price may only exist as priceTaxInc, keys are camelCase.
    """
    data = {_LEGACY_KEYS.get(k, k): v for k, v in raw.items()}

    colors = data.get("colors") or []
    if isinstance(colors, str):
        colors = [c.strip() for c in colors.split(",")]
    battery = data.get("battery") or []
    if isinstance(battery, str):
        battery = [battery]

    price = data.get("price")
    if price is None:
        price = data.get("priceTaxInc") or 0

    return Vehicle(
        id=str(data.get("id") or ""),
        model=str(data.get("model") or ""),
        name=str(data.get("name") or ""),
        price=float(price),
        battery=dedupe(battery),
        motor=str(data.get("motor") or ""),
        brake_tire=str(data.get("brake_tire") or ""),
        seat_dash=str(data.get("seat_dash") or ""),
        control_func=str(data.get("control_func") or ""),
        additional=str(data.get("additional") or ""),
        colors=dedupe(colors),
    )


def _records(value: Any, name: str) -> Tuple[List[Dict[str, Any]], int]:
    """Dict entries of an import list and the count of anything else in it."""
    if value is None:
        return [], 0
    if not isinstance(value, list):
        logger.info("skip %s: expected a list, got %s", name, type(value).__name__)
        return [], 1
    records = [r for r in value if isinstance(r, dict)]
    if len(records) != len(value):
        logger.info("skip %d non-object entries in %s", len(value) - len(records), name)
    return records, len(value) - len(records)


def accessory_from_legacy(raw: Dict[str, Any]) -> Accessory:
    return Accessory(
        id=str(raw.get("id") or ""),
        category=str(raw.get("category") or ""),
        voltage=str(raw.get("voltage") or ""),
        capacity=str(raw.get("capacity") or ""),
        price=float(raw.get("price") or 0),
    )


class CatalogStore:
    """sqlite-backed vehicles/accessories catalog plus the logo asset."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        folder = os.path.dirname(self.db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self._connect()
        try:
            with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
                conn.executescript(f.read())
            conn.commit()
        finally:
            conn.close()

    # ---------------- read ----------------

    def list_vehicles(self, search: Optional[str] = None) -> List[Vehicle]:
        conn = self._connect()
        try:
            pattern = _like(search)
            if pattern:
                rows = conn.execute(
                    "SELECT * FROM vehicles WHERE lower(model) LIKE ? OR lower(name) LIKE ? ORDER BY rowid",
                    (pattern, pattern),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM vehicles ORDER BY rowid").fetchall()
            return [_vehicle_from_row(r) for r in rows]
        finally:
            conn.close()

    def list_accessories(self, category: Optional[str] = None, search: Optional[str] = None) -> List[Accessory]:
        sql = "SELECT * FROM accessories WHERE 1=1"
        params: list = []
        if category:
            sql += " AND category = ?"
            params.append(category)
        pattern = _like(search)
        if pattern:
            sql += " AND (lower(voltage) LIKE ? OR lower(capacity) LIKE ?)"
            params.extend([pattern, pattern])
        sql += " ORDER BY rowid"

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [_accessory_from_row(r) for r in rows]
        finally:
            conn.close()

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM vehicles WHERE id = ?", (str(vehicle_id),)).fetchone()
            return _vehicle_from_row(row) if row else None
        finally:
            conn.close()

    def get_accessory(self, accessory_id: str) -> Optional[Accessory]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM accessories WHERE id = ?", (str(accessory_id),)).fetchone()
            return _accessory_from_row(row) if row else None
        finally:
            conn.close()

    def stats(self) -> Dict[str, int]:
        conn = self._connect()
        try:
            vehicles = conn.execute("SELECT COUNT(*) FROM vehicles").fetchone()[0]
            acc = conn.execute(
                "SELECT category, COUNT(*) AS n FROM accessories GROUP BY category"
            ).fetchall()
            out = {"vehicles": int(vehicles), "battery": 0, "charger": 0}
            for r in acc:
                out[r["category"]] = int(r["n"])
            return out
        finally:
            conn.close()

    # ---------------- write ----------------

    def _new_id(self, conn: sqlite3.Connection, table: str) -> str:
        n = int(time.time() * 1000)
        while conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (str(n),)).fetchone():
            n += 1
        return str(n)

    def upsert(self, record: CatalogRecord) -> CatalogRecord:
        """Validate and save. Raises ValidationError without touching the db."""
        if isinstance(record, Accessory):
            rec = validate_accessory(record)
            return self._upsert_accessory(rec)
        if isinstance(record, Vehicle):
            rec = validate_vehicle(record)
            return self._upsert_vehicle(rec)
        raise ValidationError(f"unsupported record type: {type(record).__name__}")

    def _upsert_vehicle(self, v: Vehicle) -> Vehicle:
        conn = self._connect()
        try:
            if not v.id:
                v = replace(v, id=self._new_id(conn, "vehicles"))
            conn.execute(
                """
                INSERT INTO vehicles(id, model, name, battery, motor, brake_tire, seat_dash,
                                     control_func, additional, colors, price)
                VALUES(?,?,?,?,?,?,?,?,?,?,?)
                ON CONFLICT(id) DO UPDATE SET
                    model=excluded.model, name=excluded.name, battery=excluded.battery,
                    motor=excluded.motor, brake_tire=excluded.brake_tire,
                    seat_dash=excluded.seat_dash, control_func=excluded.control_func,
                    additional=excluded.additional, colors=excluded.colors, price=excluded.price
                """,
                (
                    v.id, v.model, v.name,
                    json.dumps(list(v.battery), ensure_ascii=False),
                    v.motor, v.brake_tire, v.seat_dash, v.control_func, v.additional,
                    json.dumps(list(v.colors), ensure_ascii=False),
                    v.price,
                ),
            )
            conn.commit()
            return v
        finally:
            conn.close()

    def _upsert_accessory(self, a: Accessory) -> Accessory:
        conn = self._connect()
        try:
            if not a.id:
                a = replace(a, id=self._new_id(conn, "accessories"))
            conn.execute(
                """
                INSERT INTO accessories(id, category, voltage, capacity, price) VALUES(?,?,?,?,?)
                ON CONFLICT(id) DO UPDATE SET
                    category=excluded.category, voltage=excluded.voltage,
                    capacity=excluded.capacity, price=excluded.price
                """,
                (a.id, a.category, a.voltage, a.capacity, a.price),
            )
            conn.commit()
            return a
        finally:
            conn.close()

    def delete(self, record_id: str, kind: str) -> bool:
        if kind == KIND_VEHICLE:
            table = "vehicles"
        elif kind == KIND_ACCESSORY:
            table = "accessories"
        else:
            raise ValidationError(f"unknown kind: {kind}")
        conn = self._connect()
        try:
            cur = conn.execute(f"DELETE FROM {table} WHERE id = ?", (str(record_id),))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    # ---------------- logo ----------------

    def get_logo(self) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT value FROM assets WHERE key = ?", (LOGO_KEY,)).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    def set_logo(self, data_uri: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO assets(key, value) VALUES(?,?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (LOGO_KEY, data_uri),
            )
            conn.commit()
        finally:
            conn.close()

    def clear_logo(self) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM assets WHERE key = ?", (LOGO_KEY,))
            conn.commit()
        finally:
            conn.close()

    # ---------------- import / export ----------------

    def import_json(self, payload: Dict[str, Any]) -> Tuple[int, int]:
        """
        Loads {"products": [...], "accessories": [...]} as written by the
        browser version. Bad records are skipped, not fatal.
        """
        imported = skipped = 0
        if not isinstance(payload, dict):
            raise ValidationError("catalog import expects a JSON object")

        vehicles, bad = _records(payload.get("products") or payload.get("vehicles"), "products")
        skipped += bad
        for raw in vehicles:
            try:
                self.upsert(vehicle_from_legacy(raw))
                imported += 1
            except (ValidationError, TypeError, ValueError) as e:
                logger.info("skip vehicle %r: %s", raw.get("id"), e)
                skipped += 1
        accessories, bad = _records(payload.get("accessories"), "accessories")
        skipped += bad
        for raw in accessories:
            try:
                self.upsert(accessory_from_legacy(raw))
                imported += 1
            except (ValidationError, TypeError, ValueError) as e:
                logger.info("skip accessory %r: %s", raw.get("id"), e)
                skipped += 1
        return imported, skipped

    def export_json(self) -> Dict[str, Any]:
        return {
            "products": [
                {
                    "id": v.id,
                    "model": v.model,
                    "name": v.name,
                    "battery": list(v.battery),
                    "motor": v.motor,
                    "brakeTire": v.brake_tire,
                    "seatDash": v.seat_dash,
                    "controlFunc": v.control_func,
                    "additional": v.additional,
                    "colors": list(v.colors),
                    "price": v.price,
                }
                for v in self.list_vehicles()
            ],
            "accessories": [
                {
                    "id": a.id,
                    "category": a.category,
                    "voltage": a.voltage,
                    "capacity": a.capacity,
                    "price": a.price,
                }
                for a in self.list_accessories()
            ],
        }
