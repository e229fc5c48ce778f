"""Number formatting and template rendering.

Two renderers coexist:

- ``render_template_text`` substitutes ``{key}`` from a flat replacement
  map (fallback template packs and protocol rulesets).
- ``render_mustache`` substitutes ``{{ dotted.path }}`` from a nested
  context (phase templates and atom libraries).

Neither raises on missing data. An unknown key stays in the output as
its original token so template/catalog mismatches remain visible.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal

from aquatrack.engine.paths import MISSING, get_by_path

NOT_AVAILABLE = "N/A"

BRACE_PATTERN = re.compile(r"\{([^}]+)\}")
MUSTACHE_PATTERN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


def is_number(value) -> bool:
    """True for finite ints and floats (booleans excluded)."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _quantize(value, decimals: int) -> Decimal:
    step = Decimal(1).scaleb(-decimals)
    return Decimal(repr(float(value))).quantize(step, rounding=ROUND_HALF_UP)


def round_to(value, decimals: int = 2):
    """Round half-up to ``decimals`` places; non-numbers pass through."""
    if not is_number(value):
        return value
    return float(_quantize(value, decimals))


def format_number(value, decimals: int = 2) -> str:
    """Format a number for display.

    Rounds half-up to ``decimals`` places, then strips trailing zeros and
    a dangling decimal point. Missing or non-finite values give ``"N/A"``.

    Examples
    --------
    >>> format_number(12.5, 2)
    '12.5'
    >>> format_number(3.14159, 1)
    '3.1'
    >>> format_number(None)
    'N/A'
    """
    if not is_number(value):
        return NOT_AVAILABLE
    text = f"{_quantize(value, decimals):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text == "-0":
        text = "0"
    return text


def format_range(values, decimals: int = 2) -> str:
    """Format a ``[low, high]`` pair as ``"low-high"``, else ``"N/A"``."""
    if not isinstance(values, (list, tuple)) or len(values) != 2:
        return NOT_AVAILABLE
    if not all(is_number(value) for value in values):
        return NOT_AVAILABLE
    return f"{format_number(values[0], decimals)}-{format_number(values[1], decimals)}"


def average_range(values):
    """Mean of a ``[low, high]`` pair; a scalar is its own average.

    Returns None for anything else, including pairs with missing members.
    """
    if is_number(values):
        return values
    if not isinstance(values, (list, tuple)) or len(values) != 2:
        return None
    if not all(is_number(value) for value in values):
        return None
    return (values[0] + values[1]) / 2


def display_string(value) -> str:
    """String form used when a context value is dropped into text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(display_string(item) for item in value)
    return str(value)


def render_template_text(template: str, replacements: dict) -> str:
    """Replace ``{key}`` tokens from a flat map.

    Examples
    --------
    >>> render_template_text("Dose {dose} into {volume} L", {"dose": "2"})
    'Dose 2 into {volume} L'
    """
    if not isinstance(template, str):
        return ""

    def substitute(match):
        key = match.group(1)
        if key in replacements:
            return str(replacements[key])
        return match.group(0)

    return BRACE_PATTERN.sub(substitute, template)


def render_mustache(template: str, context: dict) -> str:
    """Replace ``{{ dotted.path }}`` tokens from a nested context.

    Examples
    --------
    >>> render_mustache("{{ products.kh_buffer.display_name }} / {{x.y}}",
    ...                 {"products": {"kh_buffer": {"display_name": "KH+"}}})
    'KH+ / {{x.y}}'
    """
    if not isinstance(template, str):
        return ""

    def substitute(match):
        value = get_by_path(context, match.group(1), MISSING)
        if value is MISSING or value is None:
            return match.group(0)
        return display_string(value)

    return MUSTACHE_PATTERN.sub(substitute, template)
