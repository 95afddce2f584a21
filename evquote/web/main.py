from __future__ import annotations

import json
import logging
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from evquote.config import settings
from evquote.constants import (
    ACCESSORY_CATEGORIES,
    BATTERY_OPTIONS,
    CATEGORY_BATTERY,
    DOC_QUOTATION,
    DOC_TYPES,
    KIND_ACCESSORY,
    KIND_VEHICLE,
    LANGUAGES,
)
from evquote.db.sqlite import CatalogStore
from evquote.models import Accessory, Vehicle
from evquote.services.csv_export import csv_filename, export_csv
from evquote.services.logo import logo_data_uri
from evquote.services.quote_pdf import export_pdf
from evquote.services.quote_session import QuoteSession
from evquote.services.translation import OpenAITranslator
from evquote.utils.formatters import money
from evquote.utils.validators import ValidationError, parse_list, parse_price

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"
SESSION_COOKIE = "quote_sid"
MAX_SESSIONS = 500

app = FastAPI(title="EV Quote Builder")

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["money"] = money

app.state.store = CatalogStore(settings.db_path)
app.state.translator = OpenAITranslator()
app.state.sessions = OrderedDict()


@app.on_event("startup")
def _startup() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    app.state.store.init_db()


def _store() -> CatalogStore:
    return app.state.store


def _find_session(request: Request) -> Optional[QuoteSession]:
    """Existing session for the cookie, or None. Never creates one."""
    sessions: "OrderedDict[str, QuoteSession]" = app.state.sessions
    sid = request.cookies.get(SESSION_COOKIE) or ""
    session = sessions.get(sid)
    if session is not None:
        sessions.move_to_end(sid)
    return session


def _session(request: Request) -> Tuple[str, QuoteSession]:
    """Session for the cookie, created when missing. Only for routes that set the cookie."""
    sessions: "OrderedDict[str, QuoteSession]" = app.state.sessions
    sid = request.cookies.get(SESSION_COOKIE) or ""
    if sid in sessions:
        sessions.move_to_end(sid)
        return sid, sessions[sid]
    sid = uuid.uuid4().hex
    sessions[sid] = QuoteSession(_store(), app.state.translator)
    while len(sessions) > MAX_SESSIONS:
        dropped, _ = sessions.popitem(last=False)
        logger.info("dropping least recently used quote session %s", dropped)
    return sid, sessions[sid]


def _render(request: Request, name: str, ctx: Dict[str, Any], sid: Optional[str] = None) -> HTMLResponse:
    base = {
        "request": request,
        "languages": LANGUAGES,
        "doc_types": DOC_TYPES,
        "categories": ACCESSORY_CATEGORIES,
        "message": request.query_params.get("msg", ""),
    }
    base.update(ctx)
    resp = templates.TemplateResponse(request, name, base)
    if sid:
        resp.set_cookie(SESSION_COOKIE, sid, httponly=True, samesite="lax")
    return resp


def _redirect(url: str, msg: str = "", sid: Optional[str] = None) -> RedirectResponse:
    if msg:
        url = f"{url}{'&' if '?' in url else '?'}msg={quote(msg)}"
    resp = RedirectResponse(url=url, status_code=303)
    if sid:
        resp.set_cookie(SESSION_COOKIE, sid, httponly=True, samesite="lax")
    return resp


def _schedule(background: BackgroundTasks, session: QuoteSession, token: Optional[int]) -> None:
    if token is not None:
        background.add_task(session.sync_translation, token)


@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    return _render(request, "index.html", {"stats": _store().stats()})


# ---------------- vehicles ----------------

@app.get("/vehicles", response_class=HTMLResponse)
def vehicles(request: Request, q: str = "", edit: str = ""):
    store = _store()
    editing = store.get_vehicle(edit) if edit else None
    return _render(
        request,
        "vehicles.html",
        {
            "vehicles": store.list_vehicles(search=q),
            "q": q,
            "editing": editing,
            "battery_options": BATTERY_OPTIONS,
        },
    )


@app.post("/vehicles/save")
def vehicles_save(
    id: str = Form(""),
    model: str = Form(""),
    name: str = Form(""),
    price: str = Form("0"),
    battery: List[str] = Form([]),
    battery_custom: str = Form(""),
    motor: str = Form(""),
    brake_tire: str = Form(""),
    seat_dash: str = Form(""),
    control_func: str = Form(""),
    additional: str = Form(""),
    colors: str = Form(""),
):
    try:
        v = Vehicle(
            id=id.strip(),
            model=model,
            name=name,
            price=parse_price(price),
            battery=tuple(battery) + tuple(parse_list(battery_custom)),
            motor=motor,
            brake_tire=brake_tire,
            seat_dash=seat_dash,
            control_func=control_func,
            additional=additional,
            colors=tuple(parse_list(colors)),
        )
        saved = _store().upsert(v)
    except ValidationError as e:
        logger.info("vehicle rejected: %s", e)
        back = f"/vehicles?edit={quote(id)}" if id else "/vehicles"
        return _redirect(back, f"❌ {e}")
    return _redirect("/vehicles", f"✅ Saved {saved.model}")


@app.post("/vehicles/{vehicle_id}/delete")
def vehicles_delete(vehicle_id: str):
    ok = _store().delete(vehicle_id, KIND_VEHICLE)
    return _redirect("/vehicles", "✅ Deleted" if ok else "❌ Not found")


# ---------------- accessories ----------------

@app.get("/accessories", response_class=HTMLResponse)
def accessories(request: Request, q: str = "", category: str = "", edit: str = ""):
    store = _store()
    editing = store.get_accessory(edit) if edit else None
    return _render(
        request,
        "accessories.html",
        {
            "accessories": store.list_accessories(category=category or None, search=q),
            "q": q,
            "selected_category": category,
            "editing": editing,
        },
    )


@app.post("/accessories/save")
def accessories_save(
    id: str = Form(""),
    category: str = Form(CATEGORY_BATTERY),
    voltage: str = Form(""),
    capacity: str = Form(""),
    price: str = Form("0"),
):
    try:
        a = Accessory(id=id.strip(), category=category, voltage=voltage, capacity=capacity, price=parse_price(price))
        saved = _store().upsert(a)
    except ValidationError as e:
        logger.info("accessory rejected: %s", e)
        back = f"/accessories?edit={quote(id)}" if id else "/accessories"
        return _redirect(back, f"❌ {e}")
    return _redirect("/accessories", f"✅ Saved {saved.voltage} {saved.capacity}")


@app.post("/accessories/{accessory_id}/delete")
def accessories_delete(accessory_id: str):
    ok = _store().delete(accessory_id, KIND_ACCESSORY)
    return _redirect("/accessories", "✅ Deleted" if ok else "❌ Not found")


# ---------------- catalog import / export ----------------

@app.get("/catalog/export.json")
def catalog_export():
    return JSONResponse(
        _store().export_json(),
        headers={"Content-Disposition": 'attachment; filename="evquote_catalog.json"'},
    )


@app.post("/catalog/import")
async def catalog_import(file: UploadFile = File(...)):
    raw = await file.read()
    try:
        payload = json.loads(raw.decode("utf-8-sig"))
        if not isinstance(payload, dict):
            raise ValueError("expected a JSON object")
    except (UnicodeDecodeError, ValueError) as e:
        return _redirect("/", f"❌ Import failed: {e}")
    imported, skipped = _store().import_json(payload)
    return _redirect("/", f"✅ Imported {imported}, skipped {skipped}")


# ---------------- quote ----------------

@app.get("/quote", response_class=HTMLResponse)
def quote_get(request: Request, category: str = KIND_VEHICLE):
    sid, session = _session(request)
    store = _store()
    logo = store.get_logo()
    return _render(
        request,
        "quote.html",
        {
            "session": session,
            "doc": session.document(logo=logo),
            "logo": logo,
            "active_category": category,
            "vehicles": store.list_vehicles(),
            "accessories": store.list_accessories(category=category) if category in ACCESSORY_CATEGORIES else [],
        },
        sid=sid,
    )


@app.post("/quote/add")
def quote_add(
    request: Request,
    background: BackgroundTasks,
    category: str = Form(KIND_VEHICLE),
    item_id: str = Form(""),
    color: str = Form(""),
):
    sid, session = _session(request)
    back = f"/quote?category={quote(category)}"
    if not item_id:
        return _redirect(back, sid=sid)
    lines_before = session.cart.lines
    if category == KIND_VEHICLE:
        token = session.add_vehicle(item_id, color or None)
    else:
        token = session.add_accessory(item_id)
    _schedule(background, session, token)
    changed = session.cart.lines != lines_before
    return _redirect(back, "" if changed else "❌ Item not found", sid=sid)


@app.post("/quote/qty")
def quote_qty(request: Request, background: BackgroundTasks, index: int = Form(...), qty: int = Form(...)):
    sid, session = _session(request)
    _schedule(background, session, session.set_quantity(index, qty))
    return _redirect("/quote", sid=sid)


@app.post("/quote/remove")
def quote_remove(request: Request, background: BackgroundTasks, index: int = Form(...)):
    sid, session = _session(request)
    _schedule(background, session, session.remove_line(index))
    return _redirect("/quote", sid=sid)


@app.post("/quote/clear")
def quote_clear(request: Request, background: BackgroundTasks):
    sid, session = _session(request)
    _schedule(background, session, session.clear())
    return _redirect("/quote", sid=sid)


@app.post("/quote/lang")
def quote_lang(request: Request, background: BackgroundTasks, language: str = Form(...)):
    sid, session = _session(request)
    if session.is_translating and language == session.language:
        return _redirect("/quote", sid=sid)
    try:
        token = session.set_language(language)
    except ValueError as e:
        return _redirect("/quote", f"❌ {e}", sid=sid)
    _schedule(background, session, token)
    return _redirect("/quote", sid=sid)


@app.post("/quote/type")
def quote_type(request: Request, doc_type: str = Form(...)):
    sid, session = _session(request)
    try:
        session.set_doc_type(doc_type)
    except ValueError as e:
        return _redirect("/quote", f"❌ {e}", sid=sid)
    return _redirect("/quote", sid=sid)


@app.post("/quote/logo")
async def quote_logo(request: Request, file: UploadFile = File(...)):
    sid, _ = _session(request)
    raw = await file.read()
    try:
        uri = logo_data_uri(raw, file.content_type)
    except ValidationError as e:
        return _redirect("/quote", f"❌ {e}", sid=sid)
    _store().set_logo(uri)
    return _redirect("/quote", "✅ Logo saved", sid=sid)


@app.post("/quote/logo/clear")
def quote_logo_clear(request: Request):
    sid, _ = _session(request)
    _store().clear_logo()
    return _redirect("/quote", sid=sid)


def _exportable(request: Request) -> QuoteSession:
    session = _find_session(request)
    if session is None or session.cart.is_empty():
        raise HTTPException(status_code=409, detail="cart is empty")
    if session.is_translating:
        raise HTTPException(status_code=409, detail="translation in progress")
    return session


@app.get("/quote/export.csv")
def quote_export_csv(request: Request):
    doc = _exportable(request).document()
    return Response(
        content=export_csv(doc),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(doc)}"'},
    )


@app.get("/quote/export.pdf")
def quote_export_pdf(request: Request):
    doc = _exportable(request).document(logo=_store().get_logo())
    result = export_pdf(doc)
    if not result.ok:
        return _redirect("/quote/print", f"⚠️ {result.warning}")
    return Response(
        content=result.data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@app.get("/quote/print", response_class=HTMLResponse)
def quote_print(request: Request):
    session = _exportable(request)
    return _render(request, "print.html", {"doc": session.document(logo=_store().get_logo())})


@app.get("/quote/status")
def quote_status(request: Request):
    session = _find_session(request)
    if session is None:
        return {
            "language": settings.default_language,
            "doc_type": DOC_QUOTATION,
            "translating": False,
            "can_export": False,
            "lines": 0,
            "total": 0,
        }
    return {
        "language": session.language,
        "doc_type": session.doc_type,
        "translating": session.is_translating,
        "can_export": session.can_export,
        "lines": len(session.cart),
        "total": session.cart.total(),
    }
