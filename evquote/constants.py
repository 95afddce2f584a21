LANG_ZH = "zh"
LANG_EN = "en"
LANGUAGES = {
    LANG_ZH: "中文",
    LANG_EN: "English",
}

DOC_QUOTATION = "quotation"
DOC_PRICE_LIST = "price_list"
DOC_TYPES = {
    DOC_QUOTATION: "报价单 (Quote)",
    DOC_PRICE_LIST: "价格表 (List)",
}

KIND_VEHICLE = "vehicle"
KIND_ACCESSORY = "accessory"

CATEGORY_BATTERY = "battery"
CATEGORY_CHARGER = "charger"
ACCESSORY_CATEGORIES = {
    CATEGORY_BATTERY: "电池 (Battery)",
    CATEGORY_CHARGER: "充电器 (Charger)",
}

# placeholder color when a vehicle lists none
DEFAULT_COLOR = "Standard"

BATTERY_OPTIONS = [
    "48V 20Ah",
    "60V 20Ah",
    "60V 32Ah",
    "72V 20Ah",
    "72V 32Ah",
]

# Fields sent to the translation collaborator. id, model and price never leave.
TRANSLATABLE_TEXT_FIELDS = ("name", "motor", "brake_tire", "seat_dash", "control_func", "additional")
TRANSLATABLE_LIST_FIELDS = ("battery", "colors")
