from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from evquote.config import settings
from evquote.constants import CATEGORY_BATTERY, DOC_PRICE_LIST, DOC_QUOTATION, LANG_ZH
from evquote.models import AccessoryLine, CartLine, VehicleLine, line_total
from evquote.utils.formatters import money

COL_INDEX = "index"
COL_SPEC = "spec"
COL_DETAILS = "details"
COL_COLORS = "colors"
COL_PRICE = "unit_price"
COL_QTY = "quantity"
COL_TOTAL = "line_total"

COLUMNS_BY_DOC = {
    DOC_QUOTATION: (COL_INDEX, COL_SPEC, COL_DETAILS, COL_PRICE, COL_QTY, COL_TOTAL),
    DOC_PRICE_LIST: (COL_INDEX, COL_SPEC, COL_DETAILS, COL_COLORS, COL_PRICE),
}

NUMERIC_COLUMNS = {COL_PRICE, COL_QTY, COL_TOTAL}

# (zh, en)
LABELS: Dict[str, Tuple[str, str]] = {
    COL_INDEX: ("#", "#"),
    COL_SPEC: ("型号/规格", "Model/Spec"),
    COL_DETAILS: ("配置详情", "Details"),
    COL_COLORS: ("可选颜色", "Colors"),
    COL_PRICE: ("单价", "Price"),
    COL_QTY: ("数量", "Qty"),
    COL_TOTAL: ("总计", "Total"),
    "grand_total": ("总金额", "Grand Total"),
    "date": ("日期", "Date"),
    "color": ("颜色", "Color"),
    "motor": ("电机", "Motor"),
    "brake_tire": ("刹车/轮胎", "Brake/Tire"),
    "battery_support": ("支持电池", "Batt Support"),
    "battery": ("电池", "Battery"),
    "charger": ("充电器", "Charger"),
    "accessory_details": ("原装配件", "Original Accessory"),
    DOC_QUOTATION: ("报价单", "QUOTATION"),
    DOC_PRICE_LIST: ("价格表", "PRICE LIST"),
    "terms": ("条款与条件", "Terms & Conditions"),
    "signature": ("授权签字", "Authorized Signature"),
    "translating": ("正在翻译…", "Translating…"),
}

TERMS: Tuple[Tuple[str, str], ...] = (
    ("所有价格含税，包含标准包装。", "Prices include tax and standard packaging."),
    ("报价有效期30天。", "Validity of this quotation is 30 days."),
    ("生产周期视订单量而定。", "Production lead time depends on order volume."),
    ("最终解释权归奔宝车业所有。", "Benbao Vehicle reserves the right of final interpretation."),
)


def label(key: str, language: str) -> str:
    zh, en = LABELS[key]
    return zh if language == LANG_ZH else en


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    numeric: bool = False


@dataclass(frozen=True)
class RenderedRow:
    index: int
    kind: str
    spec: Tuple[str, ...]
    details: Tuple[str, ...]
    colors: str
    unit_price: float
    quantity: int
    line_total: float

    def raw(self, key: str):
        """Cell value for a column key, numbers left unformatted."""
        if key == COL_INDEX:
            return self.index
        if key == COL_SPEC:
            return " / ".join(self.spec)
        if key == COL_DETAILS:
            return " / ".join(self.details)
        if key == COL_COLORS:
            return self.colors
        if key == COL_PRICE:
            return self.unit_price
        if key == COL_QTY:
            return self.quantity
        if key == COL_TOTAL:
            return self.line_total
        raise KeyError(key)

    def display(self, key: str) -> str:
        if key in (COL_PRICE, COL_TOTAL):
            return money(self.raw(key))
        return str(self.raw(key))


@dataclass(frozen=True)
class RenderedDocument:
    doc_type: str
    language: str
    columns: Tuple[Column, ...]
    rows: Tuple[RenderedRow, ...]
    grand_total: Optional[float]
    title: str
    company: str
    date_label: str
    reference: str
    issued_at: datetime
    terms_title: str
    terms: Tuple[str, ...]
    signature_label: str
    logo: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def column_keys(self) -> Tuple[str, ...]:
        return tuple(c.key for c in self.columns)

    def grand_total_display(self) -> str:
        return money(self.grand_total) if self.grand_total is not None else ""


def _vehicle_row(idx: int, line: VehicleLine, language: str, doc_type: str) -> RenderedRow:
    v = line.vehicle
    spec = [v.model, v.name]
    if doc_type == DOC_QUOTATION:
        spec.append(f"{label('color', language)}: {line.color}")
    details = (
        f"{label('motor', language)}: {v.motor}",
        f"{label('brake_tire', language)}: {v.brake_tire}",
        f"{label('battery_support', language)}: {', '.join(v.battery)}",
    )
    return RenderedRow(
        index=idx,
        kind=line.kind,
        spec=tuple(spec),
        details=details,
        colors=", ".join(v.colors) if v.colors else "-",
        unit_price=v.price,
        quantity=line.quantity,
        line_total=line_total(line),
    )


def _accessory_row(idx: int, line: AccessoryLine, language: str) -> RenderedRow:
    a = line.accessory
    category = label("battery" if a.category == CATEGORY_BATTERY else "charger", language)
    return RenderedRow(
        index=idx,
        kind=line.kind,
        spec=(category, f"{a.voltage} {a.capacity}".strip()),
        details=(label("accessory_details", language),),
        colors="-",
        unit_price=a.price,
        quantity=line.quantity,
        line_total=line_total(line),
    )


def render(
    lines: Sequence[CartLine],
    language: str,
    doc_type: str,
    *,
    logo: Optional[str] = None,
    issued_at: Optional[datetime] = None,
) -> RenderedDocument:
    if doc_type not in COLUMNS_BY_DOC:
        raise ValueError(f"unknown document type: {doc_type}")
    issued_at = issued_at or datetime.now()

    columns = tuple(
        Column(key=k, label=label(k, language), numeric=k in NUMERIC_COLUMNS)
        for k in COLUMNS_BY_DOC[doc_type]
    )

    rows: List[RenderedRow] = []
    for idx, line in enumerate(lines, start=1):
        if isinstance(line, VehicleLine):
            rows.append(_vehicle_row(idx, line, language, doc_type))
        else:
            rows.append(_accessory_row(idx, line, language))

    grand_total = sum(r.line_total for r in rows) if doc_type == DOC_QUOTATION else None
    prefix = "Q" if doc_type == DOC_QUOTATION else "P"

    return RenderedDocument(
        doc_type=doc_type,
        language=language,
        columns=columns,
        rows=tuple(rows),
        grand_total=grand_total,
        title=label(doc_type, language),
        company=settings.company_name_zh if language == LANG_ZH else settings.company_name_en,
        date_label=f"{label('date', language)}: {issued_at.strftime('%Y-%m-%d')}",
        reference=f"Ref: {prefix}-{str(int(issued_at.timestamp() * 1000))[-6:]}",
        issued_at=issued_at,
        terms_title=label("terms", language),
        terms=tuple(zh if language == LANG_ZH else en for zh, en in TERMS),
        signature_label=label("signature", language),
        logo=logo,
        labels={"grand_total": label("grand_total", language), "translating": label("translating", language)},
    )
