"""Presentation helpers shared by the invoice email and the external API."""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Union

# Inline screenshots pasted into task descriptions as data URIs
_SCREENSHOT_RE = re.compile(r"!\[Screenshot\]\((data:image/[^)]+)\)")


def clean_description(description: Optional[str]) -> str:
    """Strip embedded screenshot attachments and surrounding whitespace."""
    if not description:
        return ""
    return _SCREENSHOT_RE.sub("", description).strip()


def format_inr(amount: Union[int, float, None]) -> str:
    """Format an amount as rupees with en-US grouping, e.g. 1234.5 -> '₹1,234.50'."""
    value = float(amount or 0)
    sign = "-" if value < 0 else ""
    return f"{sign}₹{abs(value):,.2f}"


def format_long_date(value: Union[date, datetime, str, None]) -> str:
    """Render a date as 'July 4, 2025'; missing values render as 'N/A'."""
    if value is None or value == "":
        return "N/A"
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_money(amount: Union[int, float, None]) -> str:
    """Plain two-decimal dollar figure used in audit notes ('$1234.50')."""
    return f"${float(amount or 0):.2f}"
