from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from evquote.constants import BATTERY_OPTIONS


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/help"), KeyboardButton(text="/quote_show")],
            [KeyboardButton(text="/vehicles"), KeyboardButton(text="/accessories")],
            [KeyboardButton(text="/quote_pdf"), KeyboardButton(text="/quote_csv")],
        ],
        resize_keyboard=True,
    )


def battery_kb() -> ReplyKeyboardMarkup:
    rows = [[KeyboardButton(text=opt) for opt in BATTERY_OPTIONS[i:i + 3]] for i in range(0, len(BATTERY_OPTIONS), 3)]
    rows.append([KeyboardButton(text="-"), KeyboardButton(text="/cancel")])
    return ReplyKeyboardMarkup(keyboard=rows, resize_keyboard=True, one_time_keyboard=True)


def skip_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text="-"), KeyboardButton(text="/cancel")]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )
