from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from evquote.services.render import RenderedDocument
from evquote.utils.formatters import money

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "web" / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)
_env.filters["money"] = money


def render_print_html(doc: RenderedDocument) -> str:
    """Standalone printable page, for when there is no web request to render against."""
    return _env.get_template("print.html").render(doc=doc, message="")
