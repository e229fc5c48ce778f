"""Decision table evaluation.

A decision table is data: ``{"rules": [{"if": {...}, "then": {...}}, ...]}``.
Every rule whose ``if`` matches contributes its ``then`` to the result, in
file order, so later specific rules override earlier generic ones. A rule
with an empty ``if`` is a fallback: it always matches, but is skipped once
any earlier rule has matched.
"""

import logging

from aquatrack.engine.paths import MISSING, get_by_path

logger = logging.getLogger(__name__)


def match_rule(conditions, context: dict) -> bool:
    """True when every dotted path in ``conditions`` equals its value.

    Missing or empty conditions match unconditionally.
    """
    if not conditions:
        return True
    for path, expected in conditions.items():
        actual = get_by_path(context, path, MISSING)
        if actual is MISSING or not strict_equals(actual, expected):
            return False
    return True


def strict_equals(left, right) -> bool:
    """Equality that does not treat booleans as the integers 0 and 1."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def evaluate_decision_table(table: dict, context: dict) -> dict:
    """Merge the ``then`` of every matching rule.

    Parameters
    ----------
    table : dict
        Decision table with a ``rules`` list
    context : dict
        Values the rule conditions are matched against

    Returns
    -------
    dict
        Shallow merge of all matching ``then`` records (empty when none)

    Examples
    --------
    >>> table = {"rules": [
    ...     {"if": {}, "then": {"mode": "fishless_ammonia", "risk": 2}},
    ...     {"if": {"shrimp": True}, "then": {"risk": 1}},
    ... ]}
    >>> evaluate_decision_table(table, {"shrimp": True})
    {'mode': 'fishless_ammonia', 'risk': 1}
    """
    matched = False
    result = {}
    for rule in (table or {}).get("rules") or []:
        conditions = rule.get("if")
        is_fallback = isinstance(conditions, dict) and not conditions
        if is_fallback and matched:
            continue
        if match_rule(conditions, context):
            matched = True
            result = {**result, **(rule.get("then") or {})}
    logger.debug("Decision table result: %s", result)
    return result
