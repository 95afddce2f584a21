from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol, Sequence

from openai import AsyncOpenAI

from evquote.config import settings
from evquote.constants import TRANSLATABLE_LIST_FIELDS, TRANSLATABLE_TEXT_FIELDS
from evquote.models import CartLine, Vehicle, VehicleLine

logger = logging.getLogger(__name__)

IDLE = "idle"
TRANSLATING = "translating"

PROMPT = """
You are a professional translator for an Electric Vehicle (EV) factory.
Translate the technical specifications and names of the following EV products from Chinese to English.
Keep numerical values, model numbers, and technical units (V, Ah, W) unchanged.
Translate fields: "name", "battery", "motor", "brake_tire", "seat_dash", "control_func", "additional", "colors".
Copy "ref" unchanged. Keep the items in the same order and return exactly as many items as you were given.

Return strictly a JSON object {"items": [...]} whose items match the input structure.
""".strip()


class TranslationError(RuntimeError):
    pass


class Translator(Protocol):
    async def translate(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]: ...


def translatable_payload(vehicle: Vehicle, ref: int) -> Dict[str, Any]:
    item: Dict[str, Any] = {"ref": str(ref)}
    for f in TRANSLATABLE_TEXT_FIELDS:
        item[f] = getattr(vehicle, f)
    for f in TRANSLATABLE_LIST_FIELDS:
        item[f] = list(getattr(vehicle, f))
    return item


def apply_translation(vehicle: Vehicle, item: Dict[str, Any]) -> Vehicle:
    """Take translated text fields only; id, model and price stay the originals."""
    changes: Dict[str, Any] = {}
    for f in TRANSLATABLE_TEXT_FIELDS:
        v = item.get(f)
        if isinstance(v, str):
            changes[f] = v
    for f in TRANSLATABLE_LIST_FIELDS:
        v = item.get(f)
        if isinstance(v, list) and len(v) == len(getattr(vehicle, f)):
            changes[f] = tuple(str(x) for x in v)
    return replace(vehicle, **changes)


def reattach(lines: Sequence[CartLine], translated: Sequence[Dict[str, Any]]) -> List[CartLine]:
    """
    Put translated vehicles back in place of the originals, matched by position
    among the vehicle lines. Accessory lines pass through untouched and the cart
    order is kept. Raises TranslationError when the reply does not line up.
    """
    vehicle_lines = [line for line in lines if isinstance(line, VehicleLine)]
    if len(translated) != len(vehicle_lines):
        raise TranslationError(f"expected {len(vehicle_lines)} items, got {len(translated)}")

    for pos, (line, item) in enumerate(zip(vehicle_lines, translated)):
        if not isinstance(item, dict):
            raise TranslationError(f"item {pos} is not an object")
        ref = item.get("ref")
        if ref is not None and str(ref) != str(pos):
            raise TranslationError(f"item {pos} came back as ref {ref!r}")
        echoed_id = item.get("id")
        if echoed_id is not None and str(echoed_id) != line.vehicle.id:
            raise TranslationError(f"item {pos} came back with id {echoed_id!r}")

    out: List[CartLine] = []
    it = iter(translated)
    for line in lines:
        if isinstance(line, VehicleLine):
            out.append(replace(line, vehicle=apply_translation(line.vehicle, next(it))))
        else:
            out.append(line)
    return out


class OpenAITranslator:
    """Chinese -> English through any OpenAI compatible chat endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url or settings.openai_base_url
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.translation_model
        self.timeout = timeout or settings.translation_timeout
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise TranslationError("OPENAI_API_KEY is empty. Set it in .env")
        if self._client is None:
            self._client = AsyncOpenAI(base_url=self.base_url, api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def translate(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not items:
            return []
        client = self._get_client()
        try:
            resp = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": PROMPT},
                    {"role": "user", "content": json.dumps({"items": items}, ensure_ascii=False)},
                ],
                temperature=0,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            raise TranslationError(f"translation request failed: {e}") from e

        text = resp.choices[0].message.content if resp.choices else None
        if not text:
            raise TranslationError("empty translation reply")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise TranslationError(f"translation reply is not JSON: {e}") from e

        out = data.get("items") if isinstance(data, dict) else data
        if not isinstance(out, list) or len(out) != len(items):
            raise TranslationError("translation reply does not match the request")
        return out


class TranslationSync:
    """
    idle <-> translating, driven by (language, cart lines).

    Every request() issues a new token. run() applies its result only if its
    token is still the latest, so a slow stale reply never overwrites a newer
    cart or language.
    """

    def __init__(self, translator: Translator, default_language: str):
        self.translator = translator
        self.default_language = default_language
        self.language = default_language
        self.state = IDLE
        self._latest = 0
        self._display: List[CartLine] = []

    @property
    def is_translating(self) -> bool:
        return self.state == TRANSLATING

    @property
    def display_lines(self) -> List[CartLine]:
        return list(self._display)

    @property
    def latest_token(self) -> int:
        return self._latest

    def request(self, lines: Sequence[CartLine], language: str) -> Optional[int]:
        self._latest += 1
        self.language = language
        if language == self.default_language or not lines:
            self.state = IDLE
            self._display = list(lines)
            return None
        self.state = TRANSLATING
        return self._latest

    async def run(self, token: int, lines: Sequence[CartLine]) -> bool:
        """True when this result was applied, False when it was stale."""
        lines = list(lines)
        vehicles = [line.vehicle for line in lines if isinstance(line, VehicleLine)]
        try:
            if vehicles:
                payload = [translatable_payload(v, i) for i, v in enumerate(vehicles)]
                translated = await self.translator.translate(payload)
                result = reattach(lines, translated)
            else:
                result = lines
        except Exception:
            logger.exception("translation to %s failed, showing untranslated lines", self.language)
            result = lines

        if token != self._latest:
            logger.info("discarding stale translation result (token %d, latest %d)", token, self._latest)
            return False
        self._display = result
        self.state = IDLE
        return True
