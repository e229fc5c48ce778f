"""Condition languages used by rule and template data.

Three small languages, all total (they never raise on well-typed input):

Clause expressions
    ``"risk_score_1_to_5 >= 4 AND user_selected_cycling_mode != 'fish_in'"``
    used by the override policy. Quoted values are strings, everything
    else is numeric. Anything that does not parse is false.

Structured "when" clauses
    ``{"any": [...]}``, ``{"all": [...]}``, ``{"not": {...}}`` and leaf
    predicates over the rules context, used by the protocol ruleset.

Template conditions
    ``"setup.co2_enabled && !modifiers.includes('co2:wait')"`` used by
    phase templates and atom libraries. Evaluated by a small parser over
    the template context; an unknown name or a syntax error makes the
    condition false.
"""

import logging
import math
import re
from collections.abc import Mapping

from aquatrack.engine.decision_table import strict_equals

logger = logging.getLogger(__name__)


# =============================================================================
# Clause expressions
# =============================================================================

CLAUSE_PATTERN = re.compile(r"^([a-zA-Z0-9_]+)\s*(==|!=|>=|<=|>|<)\s*('[^']*'|-?\d+(?:\.\d+)?)$")


def _as_number(value):
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def evaluate_clause(clause: str, context: dict) -> bool:
    """Evaluate one ``key <op> value`` clause against a flat context."""
    match = CLAUSE_PATTERN.match(clause.strip())
    if not match:
        logger.debug("Unparseable clause %r treated as false", clause)
        return False
    key, operator, raw_value = match.groups()
    left = context.get(key)
    if raw_value.startswith("'"):
        right = raw_value[1:-1]
    else:
        right = float(raw_value)

    if operator == "==":
        return strict_equals(left, right)
    if operator == "!=":
        return not strict_equals(left, right)

    left_number = _as_number(left)
    if left_number is None or isinstance(right, str):
        return False
    if operator == ">=":
        return left_number >= right
    if operator == "<=":
        return left_number <= right
    if operator == ">":
        return left_number > right
    return left_number < right


def evaluate_expression(expression: str, context: dict) -> bool:
    """All ``AND``-joined clauses must hold. Empty expressions are false."""
    if not expression or not isinstance(expression, str):
        return False
    return all(evaluate_clause(clause, context) for clause in expression.split(" AND "))


def evaluate_override_policy(policy: dict, context: dict) -> bool:
    """True when any ``requires_acknowledgement_when`` expression holds."""
    expressions = (policy or {}).get("requires_acknowledgement_when") or []
    return any(evaluate_expression(expression, context) for expression in expressions)


# =============================================================================
# Structured "when" clauses
# =============================================================================

# when-key -> (rules-context key, membership test)
WHEN_PREDICATES = {
    "cycling_mode_in": ("cycling_mode", True),
    "substrate_in": ("substrate_type", True),
    "dark_start_enabled": ("dark_start_enabled", False),
    "recommended_dark_start": ("recommended_dark_start", False),
    "user_dark_start_override": ("user_dark_start_override", False),
    "dark_start_preference_in": ("dark_start_preference", True),
    "co2_enabled": ("co2_enabled", False),
    "plants_present": ("plants_present", False),
    "shrimp_planned": ("shrimp_planned", False),
    "risk_tolerance_in": ("risk_tolerance", True),
    "tap_kh_status_in": ("tap_kh_status", True),
    "disinfectant_in": ("disinfectant", True),
    "ammonia_available": ("ammonia_available", False),
}


def _matches_value(actual, expected) -> bool:
    if isinstance(expected, (list, tuple)):
        return any(strict_equals(actual, item) for item in expected)
    return strict_equals(actual, expected)


def matches_when(when, context: dict) -> bool:
    """Evaluate a structured ``when`` clause against the rules context.

    ``any``/``all``/``not`` take precedence over leaf predicates. Leaf keys
    not listed in ``WHEN_PREDICATES`` do not constrain the match, so a typo
    in rule data silently matches everything; ruleset authors should lint
    their keys.

    Parameters
    ----------
    when : dict or None
        Clause tree; None or empty matches unconditionally
    context : dict
        Rules context built by the orchestrator

    Returns
    -------
    bool
    """
    if not when:
        return True
    if not isinstance(when, Mapping):
        return False
    if "any" in when:
        return any(matches_when(entry, context) for entry in when["any"] or [])
    if "all" in when:
        return all(matches_when(entry, context) for entry in when["all"] or [])
    if "not" in when:
        return not matches_when(when["not"], context)

    for key, (context_key, membership) in WHEN_PREDICATES.items():
        if key not in when:
            continue
        expected = when[key]
        if membership and expected is None:
            continue
        if not _matches_value(context.get(context_key), expected):
            return False
    return True


# =============================================================================
# Template conditions
# =============================================================================

class ConditionError(Exception):
    """Raised internally when a template condition cannot be evaluated."""


TOKEN_PATTERN = re.compile(
    r"""
    \s*(?:
        (?P<number>-?\d+(?:\.\d+)?)
      | (?P<string>'[^']*'|"[^"]*")
      | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
      | (?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!().,])
    )
    """,
    re.VERBOSE,
)

KEYWORD_OPERATORS = {"and": "&&", "or": "||", "not": "!"}
LITERALS = {
    "true": True, "True": True,
    "false": False, "False": False,
    "null": None, "None": None, "undefined": None,
}


def tokenize(expression: str) -> list[tuple[str, object]]:
    tokens = []
    position = 0
    expression = expression.rstrip()
    while position < len(expression):
        match = TOKEN_PATTERN.match(expression, position)
        if not match or match.end() == position:
            raise ConditionError(f"Unexpected character at {position} in {expression!r}")
        position = match.end()
        if match.group("number") is not None:
            tokens.append(("value", float(match.group("number"))))
        elif match.group("string") is not None:
            tokens.append(("value", match.group("string")[1:-1]))
        elif match.group("name") is not None:
            name = match.group("name")
            if name in KEYWORD_OPERATORS:
                tokens.append(("op", KEYWORD_OPERATORS[name]))
            elif name in LITERALS:
                tokens.append(("value", LITERALS[name]))
            else:
                tokens.append(("name", name))
        else:
            tokens.append(("op", match.group("op")))
    return tokens


def truthy(value) -> bool:
    """Truthiness as template authors expect: empty lists are still true."""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _loose_equals(left, right) -> bool:
    if _is_number(left) and _is_number(right):
        return float(left) == float(right)
    return strict_equals(left, right)


def _identical(left, right) -> bool:
    if _is_number(left) and _is_number(right):
        return float(left) == float(right)
    return type(left) is type(right) and left == right


def _ordered(operator, left, right) -> bool:
    comparable = (
        (isinstance(left, str) and isinstance(right, str))
        or (_is_number(left) and _is_number(right))
    )
    if not comparable:
        return False
    if operator == "<":
        return left < right
    if operator == "<=":
        return left <= right
    if operator == ">":
        return left > right
    return left >= right


class TemplateConditionParser:
    """Recursive-descent evaluator for template condition strings.

    Grammar, loosest binding first::

        or      := and ('||' and)*
        and     := unary ('&&' unary)*
        unary   := '!' unary | compare
        compare := primary (('==' | '===' | '!=' | '!==' | '<' | '<=' | '>' | '>=') primary)?
        primary := literal | path | '(' or ')'
        path    := name ('.' name | '.includes' '(' or ')' | '.length')*
    """

    def __init__(self, expression: str, context: Mapping):
        self.tokens = tokenize(expression)
        self.position = 0
        self.context = context

    def evaluate(self):
        value = self._or()
        if self.position != len(self.tokens):
            raise ConditionError(f"Unexpected token {self.tokens[self.position]!r}")
        return value

    def _peek(self):
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return (None, None)

    def _take(self, kind=None, value=None):
        token = self._peek()
        if token[0] is None or (kind and token[0] != kind) or (value is not None and token[1] != value):
            raise ConditionError(f"Expected {value or kind}, got {token!r}")
        self.position += 1
        return token

    def _at_op(self, *ops) -> bool:
        kind, value = self._peek()
        return kind == "op" and value in ops

    def _or(self):
        left = self._and()
        while self._at_op("||"):
            self._take()
            right = self._and()
            left = left if truthy(left) else right
        return left

    def _and(self):
        left = self._unary()
        while self._at_op("&&"):
            self._take()
            right = self._unary()
            left = right if truthy(left) else left
        return left

    def _unary(self):
        if self._at_op("!"):
            self._take()
            return not truthy(self._unary())
        return self._compare()

    def _compare(self):
        left = self._primary()
        if self._at_op("==", "===", "!=", "!==", "<", "<=", ">", ">="):
            _, operator = self._take()
            right = self._primary()
            if operator == "==":
                return _loose_equals(left, right)
            if operator == "===":
                return _identical(left, right)
            if operator == "!=":
                return not _loose_equals(left, right)
            if operator == "!==":
                return not _identical(left, right)
            return _ordered(operator, left, right)
        return left

    def _primary(self):
        kind, value = self._peek()
        if kind == "value":
            self._take()
            return value
        if kind == "op" and value == "(":
            self._take()
            inner = self._or()
            self._take("op", ")")
            return inner
        if kind == "name":
            return self._path()
        raise ConditionError(f"Unexpected token {(kind, value)!r}")

    def _path(self):
        _, name = self._take("name")
        if name not in self.context:
            raise ConditionError(f"Unknown name {name!r}")
        current = self.context[name]
        while self._at_op("."):
            self._take()
            _, attribute = self._take("name")
            if attribute == "includes" and self._at_op("("):
                self._take()
                needle = self._or()
                self._take("op", ")")
                current = self._includes(current, needle)
            elif attribute == "length":
                current = self._length(current)
            elif isinstance(current, Mapping):
                current = current.get(attribute)
            elif current is None:
                raise ConditionError(f"Cannot read {attribute!r} of nothing")
            else:
                current = None
        return current

    @staticmethod
    def _includes(container, needle) -> bool:
        if isinstance(container, str):
            return isinstance(needle, str) and needle in container
        if isinstance(container, (list, tuple, set, frozenset)):
            return any(_loose_equals(item, needle) for item in container)
        raise ConditionError("includes() needs a list or string")

    @staticmethod
    def _length(value):
        if isinstance(value, (str, list, tuple)):
            return len(value)
        if value is None:
            raise ConditionError("Cannot read length of nothing")
        return None


def evaluate_template_condition(expression, context: Mapping) -> bool:
    """Evaluate a template condition string; fails closed.

    A missing or non-string condition is true. Any error (syntax error,
    unknown root name, reading through a missing object) makes the
    condition false.

    Examples
    --------
    >>> ctx = {"setup": {"co2_enabled": True}, "modifiers": ["co2:wait"]}
    >>> evaluate_template_condition("setup.co2_enabled && !modifiers.includes('co2:wait')", ctx)
    False
    >>> evaluate_template_condition("unknown_flag", ctx)
    False
    """
    if not expression or not isinstance(expression, str):
        return True
    try:
        return truthy(TemplateConditionParser(expression, context).evaluate())
    except ConditionError as exc:
        logger.debug("Template condition %r evaluated as false: %s", expression, exc)
        return False
