from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from evquote.config import settings
from evquote.constants import DOC_QUOTATION, DOC_TYPES, LANGUAGES
from evquote.models import CartLine
from evquote.services.cart import Cart, CatalogLookup
from evquote.services.render import RenderedDocument, render
from evquote.services.translation import TranslationSync, Translator


class QuoteSession:
    """
    One quote being built: cart, language, document type and the translated
    view of the cart. Cart and language changes return a token when a
    translation pass is due; await sync_translation(token) to run it.
    """

    def __init__(self, catalog: CatalogLookup, translator: Translator, default_language: Optional[str] = None):
        self.cart = Cart(catalog)
        self.doc_type = DOC_QUOTATION
        self.sync = TranslationSync(translator, default_language or settings.default_language)

    @property
    def language(self) -> str:
        return self.sync.language

    @property
    def is_translating(self) -> bool:
        return self.sync.is_translating

    @property
    def can_export(self) -> bool:
        return not self.cart.is_empty() and not self.sync.is_translating

    def _changed(self) -> Optional[int]:
        return self.sync.request(self.cart.lines, self.sync.language)

    # ---------------- cart ----------------

    def add_vehicle(self, vehicle_id: str, color: Optional[str] = None) -> Optional[int]:
        if self.cart.add_vehicle(vehicle_id, color) is None:
            return None
        return self._changed()

    def add_accessory(self, accessory_id: str) -> Optional[int]:
        if self.cart.add_accessory(accessory_id) is None:
            return None
        return self._changed()

    def remove_line(self, index: int) -> Optional[int]:
        if not self.cart.remove_line(index):
            return None
        return self._changed()

    def set_quantity(self, index: int, qty: int) -> Optional[int]:
        if not self.cart.set_quantity(index, qty):
            return None
        return self._changed()

    def clear(self) -> Optional[int]:
        self.cart.clear()
        return self._changed()

    # ---------------- view ----------------

    def set_language(self, language: str) -> Optional[int]:
        if language not in LANGUAGES:
            raise ValueError(f"unknown language: {language}")
        return self.sync.request(self.cart.lines, language)

    def set_doc_type(self, doc_type: str) -> None:
        if doc_type not in DOC_TYPES:
            raise ValueError(f"unknown document type: {doc_type}")
        self.doc_type = doc_type

    async def sync_translation(self, token: Optional[int]) -> bool:
        if token is None:
            return False
        return await self.sync.run(token, self.cart.lines)

    def display_lines(self) -> List[CartLine]:
        return self.sync.display_lines

    def document(self, logo: Optional[str] = None, issued_at: Optional[datetime] = None) -> RenderedDocument:
        return render(self.display_lines(), self.language, self.doc_type, logo=logo, issued_at=issued_at)
