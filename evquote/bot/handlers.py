import logging
import shlex
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from aiogram import F, Router, html
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import FSInputFile, Message, ReplyKeyboardRemove

from evquote.bot.keyboards import battery_kb, main_kb, skip_kb
from evquote.bot.states import VehicleAdd
from evquote.config import settings
from evquote.constants import (
    ACCESSORY_CATEGORIES,
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
from evquote.services.print_view import render_print_html
from evquote.services.quote_pdf import export_pdf
from evquote.services.quote_session import QuoteSession
from evquote.services.translation import OpenAITranslator
from evquote.utils.formatters import money
from evquote.utils.validators import ValidationError, parse_list, parse_price

logger = logging.getLogger(__name__)

router = Router()

store = CatalogStore(settings.db_path)
translator = OpenAITranslator()

SESSIONS: Dict[int, QuoteSession] = {}  # chat_id -> quote

SKIP = "-"


def _is_admin(message: Message) -> bool:
    try:
        return int(message.from_user.id) == int(settings.admin_id)
    except (AttributeError, TypeError, ValueError):
        return False


def _session(message: Message) -> QuoteSession:
    chat_id = message.chat.id
    if chat_id not in SESSIONS:
        SESSIONS[chat_id] = QuoteSession(store, translator)
    return SESSIONS[chat_id]


def _args(message: Message) -> list:
    try:
        return shlex.split(message.text or "")[1:]
    except ValueError:
        return (message.text or "").split()[1:]


def _export_path(filename: str) -> Path:
    out = Path(settings.export_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out / filename


async def _sync(message: Message, session: QuoteSession, token: Optional[int]) -> None:
    if token is None:
        return
    await message.answer("⏳ Translating… / 正在翻译…")
    await session.sync_translation(token)


def _cancelled(text: str) -> bool:
    return text.strip() == "/cancel"


@router.message(Command("start"))
async def cmd_start(message: Message):
    if not _is_admin(message):
        return
    store.init_db()
    await message.answer("✅ EV Quote Builder started / 已启动", reply_markup=main_kb())


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    await state.clear()
    await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())


@router.message(Command("help"))
async def cmd_help(message: Message):
    if not _is_admin(message):
        return

    text = (
        "<b>EV Quote Builder</b>\n\n"
        "<b>Catalog</b>\n"
        "/vehicles [search] — vehicle list\n"
        "/accessories [battery|charger] [search] — accessory list\n"
        "/vehicle_add — add vehicle (wizard)\n"
        "/accessory_add CATEGORY VOLTAGE CAPACITY PRICE\n"
        "/delete vehicle|accessory ID\n\n"
        "<b>Quote</b>\n"
        "/quote_add ID [COLOR] — add vehicle or accessory\n"
        "/quote_show — show current quote\n"
        "/quote_qty N QTY — set quantity of line N\n"
        "/quote_remove N — remove line N\n"
        "/quote_clear — empty the quote\n"
        "/quote_lang zh|en — document language\n"
        "/quote_type quotation|price_list — document type\n"
        "/quote_csv, /quote_pdf — export\n\n"
        "<b>Logo</b>\n"
        "send a photo with caption /logo — set header logo\n"
        "/logo_clear — remove logo\n"
    )
    await message.answer(text)


# ---------------- catalog ----------------

@router.message(Command("vehicles"))
async def cmd_vehicles(message: Message):
    if not _is_admin(message):
        return
    search = " ".join(_args(message))
    rows = store.list_vehicles(search=search or None)
    if not rows:
        await message.answer("No vehicles yet. Add one: /vehicle_add")
        return
    lines = ["<b>Vehicles:</b>"]
    for v in rows:
        colors = ", ".join(v.colors) if v.colors else "-"
        lines.append(
            f"• <code>{html.quote(v.id)}</code> <b>{html.quote(v.model)}</b> {html.quote(v.name)} — "
            f"{money(v.price)} ({html.quote(colors)})"
        )
    await message.answer("\n".join(lines))


@router.message(Command("accessories"))
async def cmd_accessories(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    category = None
    if args and args[0].lower() in ACCESSORY_CATEGORIES:
        category = args.pop(0).lower()
    rows = store.list_accessories(category=category, search=" ".join(args) or None)
    if not rows:
        await message.answer("No accessories. Add one: /accessory_add battery 60V 20Ah 850")
        return
    lines = ["<b>Accessories:</b>"]
    for a in rows:
        lines.append(
            f"• <code>{html.quote(a.id)}</code> {ACCESSORY_CATEGORIES[a.category]} "
            f"{html.quote(a.voltage)} {html.quote(a.capacity)} — {money(a.price)}"
        )
    await message.answer("\n".join(lines))


@router.message(Command("accessory_add"))
async def cmd_accessory_add(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    if len(args) != 4:
        await message.answer(
            "Format: /accessory_add CATEGORY VOLTAGE CAPACITY PRICE\n"
            f"Categories: {', '.join(ACCESSORY_CATEGORIES)}"
        )
        return
    category, voltage, capacity, price = args
    try:
        saved = store.upsert(
            Accessory(id="", category=category.lower(), voltage=voltage, capacity=capacity, price=parse_price(price))
        )
    except ValidationError as e:
        await message.answer(f"❌ {html.quote(str(e))}")
        return
    await message.answer(f"✅ Added: <code>{saved.id}</code> {html.quote(saved.voltage)} {html.quote(saved.capacity)}")


@router.message(Command("delete"))
async def cmd_delete(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    if len(args) != 2 or args[0].lower() not in (KIND_VEHICLE, KIND_ACCESSORY):
        await message.answer("Format: /delete vehicle|accessory ID")
        return
    kind, record_id = args[0].lower(), args[1]
    if store.delete(record_id, kind):
        await message.answer(f"✅ Deleted {kind} {html.quote(record_id)}")
    else:
        await message.answer(f"❌ {kind} {html.quote(record_id)} not found")


@router.message(Command("vehicle_add"))
async def cmd_vehicle_add(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    await state.clear()
    await state.set_state(VehicleAdd.waiting_model)
    await message.answer(
        "Adding a vehicle.\n\n1/7) Model (e.g. BB-1)\nCancel: /cancel",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(VehicleAdd.waiting_model)
async def vehicle_add_model(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    text = (message.text or "").strip()
    if _cancelled(text):
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return
    if not text or text.startswith("/"):
        await message.answer("Send the model as text. Cancel: /cancel")
        return
    await state.update_data(model=text)
    await state.set_state(VehicleAdd.waiting_name)
    await message.answer("2/7) Name (e.g. 电动三轮车)\nCancel: /cancel")


@router.message(VehicleAdd.waiting_name)
async def vehicle_add_name(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    text = (message.text or "").strip()
    if _cancelled(text):
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return
    if not text or text.startswith("/"):
        await message.answer("Send the name as text. Cancel: /cancel")
        return
    await state.update_data(name=text)
    await state.set_state(VehicleAdd.waiting_price)
    await message.answer("3/7) Price incl. tax (e.g. 5000)\nCancel: /cancel")


@router.message(VehicleAdd.waiting_price)
async def vehicle_add_price(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    text = (message.text or "").strip()
    if _cancelled(text):
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return
    try:
        price = parse_price(text)
        if price < 0:
            raise ValidationError("price must be >= 0")
    except ValidationError:
        await message.answer("Price must be a number >= 0, e.g. 5000\nCancel: /cancel")
        return
    await state.update_data(price=price)
    await state.set_state(VehicleAdd.waiting_battery)
    await message.answer(
        "4/7) Supported batteries, comma separated, or '-' to skip",
        reply_markup=battery_kb(),
    )


@router.message(VehicleAdd.waiting_battery)
async def vehicle_add_battery(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    text = (message.text or "").strip()
    if _cancelled(text):
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return
    await state.update_data(battery=[] if text == SKIP else parse_list(text))
    await state.set_state(VehicleAdd.waiting_colors)
    await message.answer("5/7) Colors, comma separated, or '-' to skip", reply_markup=skip_kb())


@router.message(VehicleAdd.waiting_colors)
async def vehicle_add_colors(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    text = (message.text or "").strip()
    if _cancelled(text):
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return
    await state.update_data(colors=[] if text == SKIP else parse_list(text))
    await state.set_state(VehicleAdd.waiting_motor)
    await message.answer("6/7) Motor, or '-' to skip", reply_markup=skip_kb())


@router.message(VehicleAdd.waiting_motor)
async def vehicle_add_motor(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    text = (message.text or "").strip()
    if _cancelled(text):
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return
    await state.update_data(motor="" if text == SKIP else text)
    await state.set_state(VehicleAdd.waiting_brake_tire)
    await message.answer("7/7) Brake/Tire, or '-' to skip", reply_markup=skip_kb())


@router.message(VehicleAdd.waiting_brake_tire)
async def vehicle_add_brake_tire(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    text = (message.text or "").strip()
    if _cancelled(text):
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return

    data = await state.get_data()
    try:
        saved = store.upsert(
            Vehicle(
                id="",
                model=str(data.get("model", "")),
                name=str(data.get("name", "")),
                price=float(data.get("price", 0.0)),
                battery=tuple(data.get("battery", [])),
                motor=str(data.get("motor", "")),
                brake_tire="" if text == SKIP else text,
                colors=tuple(data.get("colors", [])),
            )
        )
    except ValidationError as e:
        await message.answer(f"❌ {html.quote(str(e))}", reply_markup=ReplyKeyboardRemove())
        return
    finally:
        await state.clear()

    await message.answer(
        f"✅ Vehicle added: <code>{saved.id}</code> {html.quote(saved.model)}",
        reply_markup=main_kb(),
    )


# ---------------- quote ----------------

def _quote_text(session: QuoteSession) -> str:
    doc = session.document()
    lines = [
        f"<b>{html.quote(doc.title)}</b> ({LANGUAGES[session.language]})",
    ]
    for row in doc.rows:
        head = html.quote(" / ".join(row.spec))
        if session.doc_type == DOC_QUOTATION:
            lines.append(f"{row.index}. {head}\n    {money(row.unit_price)} × {row.quantity} = {money(row.line_total)}")
        else:
            lines.append(f"{row.index}. {head}\n    {money(row.unit_price)} ({html.quote(row.colors)})")
    if doc.grand_total is not None:
        lines.append(f"\n<b>{html.quote(doc.labels['grand_total'])}: {doc.grand_total_display()}</b>")
    return "\n".join(lines)


@router.message(Command("quote_add"))
async def cmd_quote_add(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    if not args:
        await message.answer("Format: /quote_add ID [COLOR]\nIDs: /vehicles, /accessories")
        return

    session = _session(message)
    item_id = args[0]
    if store.get_vehicle(item_id) is not None:
        color = " ".join(args[1:]) or None
        before = session.cart.lines
        token = session.add_vehicle(item_id, color)
        if session.cart.lines == before:
            vehicle = store.get_vehicle(item_id)
            await message.answer(f"❌ Color must be one of: {html.quote(', '.join(vehicle.colors))}")
            return
    elif store.get_accessory(item_id) is not None:
        token = session.add_accessory(item_id)
    else:
        await message.answer(f"❌ Item {html.quote(item_id)} not found")
        return

    await _sync(message, session, token)
    await message.answer(f"✅ Added. Lines: {len(session.cart)}, total {money(session.cart.total())}")


@router.message(Command("quote_show"))
async def cmd_quote_show(message: Message):
    if not _is_admin(message):
        return
    session = _session(message)
    if session.cart.is_empty():
        await message.answer("Quote is empty. Add items: /quote_add ID")
        return
    if session.is_translating:
        await message.answer("⏳ Translating… / 正在翻译…")
        return
    await message.answer(_quote_text(session))


def _line_number(text: str, session: QuoteSession) -> Optional[int]:
    try:
        n = int(text)
    except ValueError:
        return None
    if not 1 <= n <= len(session.cart):
        return None
    return n - 1


@router.message(Command("quote_qty"))
async def cmd_quote_qty(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    session = _session(message)
    if len(args) != 2:
        await message.answer("Format: /quote_qty N QTY")
        return
    index = _line_number(args[0], session)
    if index is None:
        await message.answer(f"❌ No line {html.quote(args[0])}. See /quote_show")
        return
    try:
        qty = int(args[1])
    except ValueError:
        await message.answer("QTY must be a whole number, e.g. 3")
        return
    if qty < 1:
        await message.answer("QTY must be at least 1. To drop a line use /quote_remove N")
        return
    await _sync(message, session, session.set_quantity(index, qty))
    await message.answer(f"✅ Line {index + 1}: × {qty}. Total {money(session.cart.total())}")


@router.message(Command("quote_remove"))
async def cmd_quote_remove(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    session = _session(message)
    index = _line_number(args[0], session) if len(args) == 1 else None
    if index is None:
        await message.answer("Format: /quote_remove N (see /quote_show)")
        return
    await _sync(message, session, session.remove_line(index))
    await message.answer(f"✅ Removed line {index + 1}. Lines left: {len(session.cart)}")


@router.message(Command("quote_clear"))
async def cmd_quote_clear(message: Message):
    if not _is_admin(message):
        return
    session = _session(message)
    await _sync(message, session, session.clear())
    await message.answer("✅ Quote cleared")


@router.message(Command("quote_lang"))
async def cmd_quote_lang(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    if len(args) != 1 or args[0].lower() not in LANGUAGES:
        await message.answer(f"Format: /quote_lang {'|'.join(LANGUAGES)}")
        return
    session = _session(message)
    await _sync(message, session, session.set_language(args[0].lower()))
    await message.answer(f"✅ Language: {LANGUAGES[session.language]}")


@router.message(Command("quote_type"))
async def cmd_quote_type(message: Message):
    if not _is_admin(message):
        return
    args = _args(message)
    if len(args) != 1 or args[0].lower() not in DOC_TYPES:
        await message.answer(f"Format: /quote_type {'|'.join(DOC_TYPES)}")
        return
    session = _session(message)
    session.set_doc_type(args[0].lower())
    await message.answer(f"✅ Document: {DOC_TYPES[session.doc_type]}")


async def _check_exportable(message: Message, session: QuoteSession) -> bool:
    if session.cart.is_empty():
        await message.answer("❌ Quote is empty")
        return False
    if session.is_translating:
        await message.answer("⏳ Translation in progress, try again in a moment")
        return False
    return True


@router.message(Command("quote_csv"))
async def cmd_quote_csv(message: Message):
    if not _is_admin(message):
        return
    session = _session(message)
    if not await _check_exportable(message, session):
        return
    doc = session.document()
    path = _export_path(csv_filename(doc))
    path.write_bytes(export_csv(doc))
    await message.answer_document(FSInputFile(path))


@router.message(Command("quote_pdf"))
async def cmd_quote_pdf(message: Message):
    if not _is_admin(message):
        return
    session = _session(message)
    if not await _check_exportable(message, session):
        return
    doc = session.document(logo=store.get_logo())
    result = export_pdf(doc)
    if result.ok:
        path = _export_path(result.filename)
        path.write_bytes(result.data)
        await message.answer_document(FSInputFile(path))
        return

    await message.answer(f"⚠️ {html.quote(result.warning or '')}")
    stamp = int(datetime.now().timestamp() * 1000)
    path = _export_path(f"evquote_print_{stamp}.html")
    path.write_text(render_print_html(doc), encoding="utf-8")
    await message.answer_document(FSInputFile(path), caption="Open in a browser and print / 用浏览器打开并打印")


# ---------------- logo ----------------

@router.message(Command("logo"), F.photo)
async def cmd_logo(message: Message):
    if not _is_admin(message):
        return
    photo = message.photo[-1]
    if photo.file_size and photo.file_size > settings.logo_max_bytes:
        await message.answer("❌ 图片文件过大，请上传小于 2MB 的图片 (Image too large, max 2MB)")
        return
    buf = await message.bot.download(photo)
    try:
        uri = logo_data_uri(buf.read(), "image/jpeg")
    except ValidationError as e:
        await message.answer(f"❌ {html.quote(str(e))}")
        return
    store.set_logo(uri)
    logger.info("logo updated from chat %s (%d bytes)", message.chat.id, photo.file_size or 0)
    await message.answer("✅ Logo saved")


@router.message(Command("logo"))
async def cmd_logo_no_photo(message: Message):
    if not _is_admin(message):
        return
    await message.answer("Send a photo with the caption /logo")


@router.message(Command("logo_clear"))
async def cmd_logo_clear(message: Message):
    if not _is_admin(message):
        return
    store.clear_logo()
    await message.answer("✅ Logo removed")

