# backend/mentorship/services/template_service.py
"""Jinja2 rendering for the HTML emails in ``mentorship/templates/email``."""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import Environment, FileSystemLoader

from ..core.config import settings
from ..core.constants import BRAND_NAME
from ..core.timezone_utils import utc_to_local

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def format_currency(value: Union[Decimal, float, int]) -> str:
    return f"${Decimal(str(value)):,.2f}"


def format_local_datetime(value: Union[datetime, str], tz_name: Optional[str] = None) -> str:
    """``Wednesday, June 3, 2026 at 2:00 PM EDT`` in the viewer's zone (platform default otherwise)."""
    if isinstance(value, str):
        return value
    local = utc_to_local(value, tz_name)
    return local.strftime("%A, %B %d, %Y at %I:%M %p %Z").replace(" 0", " ")


class TemplateService:
    def __init__(self, template_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = format_currency
        self.env.filters["local_datetime"] = format_local_datetime
        self.env.globals.update(
            brand_name=BRAND_NAME,
            frontend_url=settings.frontend_url,
            support_email=settings.from_email,
        )

    def render(self, name: str, **context: Any) -> str:
        """Render ``name``; ``jinja2.TemplateNotFound`` propagates to the caller."""
        context.setdefault("current_year", datetime.now().year)
        return self.env.get_template(name).render(**context)
