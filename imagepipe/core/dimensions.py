"""
Width/height values that are either a fixed number of pixels or a
symbolic "variable" marker resolved later from context.
"""
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

VARIABLE_KEYWORDS = ("auto", "flex", "variable", "natural")
VARIABLE_FRAGMENTS = ("{", "*", "variable", "flexible")

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")


@dataclass(frozen=True)
class DimensionValue:
    """
    Parsed dimension.

    Exactly one of ``value`` or ``is_variable`` is set for usable input.
    Neither set means the input could not be parsed.
    """
    raw: Any
    value: Optional[Union[int, float]] = None
    is_variable: bool = False
    unit: Optional[str] = None

    @property
    def is_invalid(self) -> bool:
        return self.value is None and not self.is_variable

    @property
    def is_fixed(self) -> bool:
        return self.value is not None


def parse_dimension(raw: Any) -> DimensionValue:
    """Parse a number or string into a DimensionValue. Never raises."""
    # bool is an int subclass but never a dimension
    if isinstance(raw, bool):
        return DimensionValue(raw=raw)

    if isinstance(raw, (int, float)):
        return DimensionValue(raw=raw, value=raw, unit="px")

    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in VARIABLE_KEYWORDS or any(frag in text for frag in VARIABLE_FRAGMENTS):
            return DimensionValue(raw=raw, is_variable=True)

        match = _LEADING_DIGITS.match(raw)
        if match:
            return DimensionValue(raw=raw, value=int(match.group(1)), unit="px")

    return DimensionValue(raw=raw)


def is_variable_dimension(raw: Any) -> bool:
    return parse_dimension(raw).is_variable
