"""
Placeholder expansion for rename patterns.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional

from ..core.constants import INVALID_FILENAME_CHARS

_INVALID = re.compile("[" + re.escape(INVALID_FILENAME_CHARS) + r"\x00-\x1f]")


@dataclass
class NamingContext:
    """Values available to a rename pattern."""
    name: str
    width: int
    height: int
    index: int = 1
    total: int = 1
    extension: str = ""
    now: Optional[datetime] = None
    vars: Dict[str, Any] = field(default_factory=dict)


def expand_pattern(pattern: str, ctx: NamingContext) -> str:
    """
    Expand a rename pattern.

    Available tokens:
    - {name}, {name_lower}, {name_upper}: source base name
    - {index}, {total}: 1-based position in the batch and batch size
    - {width}, {height}, {dimensions}: current size, e.g. "800x600"
    - {date}, {time}, {timestamp}: processing time (timestamp in ms)
    - {year}, {month}, {day}, {hour}, {minute}, {second}
    - Plus any custom variables in ctx.vars (e.g. {size} for favicons)
    """
    dt = ctx.now or datetime.now()

    tokens = {
        "name": ctx.name,
        "name_lower": ctx.name.lower(),
        "name_upper": ctx.name.upper(),
        "index": ctx.index,
        "total": ctx.total,
        "width": ctx.width,
        "height": ctx.height,
        "dimensions": f"{ctx.width}x{ctx.height}",
        "date": f"{dt:%Y-%m-%d}",
        "time": f"{dt:%H-%M-%S}",
        "timestamp": int(dt.timestamp() * 1000),
        "year": f"{dt:%Y}",
        "month": f"{dt:%m}",
        "day": f"{dt:%d}",
        "hour": f"{dt:%H}",
        "minute": f"{dt:%M}",
        "second": f"{dt:%S}",
        **(ctx.vars or {}),
    }

    out = pattern
    for k, v in tokens.items():
        placeholder = "{" + k + "}"
        if placeholder in out:
            out = out.replace(placeholder, str(v))

    return out


def sanitize_filename(name: str, max_length: int = 255, separator: str = "-") -> str:
    """Replace characters that are not allowed in file names and trim the result."""
    cleaned = _INVALID.sub(separator, name).strip(" .")
    return (cleaned or "unnamed")[:max_length]


def build_filename(pattern: str, ctx: NamingContext, separator: str = "-",
                   add_timestamp: bool = False, max_length: int = 255) -> str:
    """Expand a pattern into a base file name (no extension)."""
    name = expand_pattern(pattern, ctx)
    if add_timestamp and "{timestamp}" not in pattern:
        dt = ctx.now or datetime.now()
        name = f"{name}{separator}{int(dt.timestamp() * 1000)}"
    return sanitize_filename(name, max_length=max_length, separator=separator)
