from evquote.config import settings


def money(v: float) -> str:
    """Grouped amount in the catalog currency, trailing zero decimals dropped: ¥20,500 / ¥12.5"""
    text = f"{float(v):,.{settings.decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{settings.currency_symbol}{text}"


def plain_number(v: float):
    """Raw value for CSV cells: ints stay ints."""
    f = float(v)
    return int(f) if f.is_integer() else round(f, settings.decimals)
