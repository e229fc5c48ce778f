"""Dotted-path lookup shared by decision tables, conditions and templates."""

from collections.abc import Mapping, Sequence

MISSING = object()


def get_by_path(obj, path, default=None):
    """Resolve ``"a.b.c"`` against nested mappings (and list indices).

    Total: a missing key, a non-container along the way, or an empty path
    returns ``default`` instead of raising.

    Examples
    --------
    >>> get_by_path({"a": {"b": [10, 20]}}, "a.b.1")
    20
    >>> get_by_path({"a": None}, "a.b") is None
    True
    """
    if not path or not isinstance(path, str):
        return default
    current = obj
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return default
            current = current[key]
        elif isinstance(current, Sequence) and not isinstance(current, str) and key.isdigit():
            index = int(key)
            if index >= len(current):
                return default
            current = current[index]
        else:
            return default
    return current
