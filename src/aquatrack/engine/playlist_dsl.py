"""Playlist DSL: author phase playlists as text.

One entry per line::

    # comment
    i_intro_duration(days=7)
    t_chem_test(parameter=nitrate, cadence=one_time)
    if setup.can_test_nitrate: t_chem_test(parameter=nitrate)
    if setup.co2_enabled: i_co2_wait() else: i_co2_none()
    if livestock.has_shrimp:
        i_shrimp_note()
    else: i_no_shrimp_note()

Argument values are quoted strings, integers, ``true``/``false``, dotted
paths (kept as ``{"$expr": "a.b"}`` and resolved at expansion time) or bare
words (strings). A condition without a comparison operator becomes
``<cond> == true``; ``else`` negates the preceding condition as
``!(<cond>)``.

Playbooks split into phases with ``## PHASE_ID - Phase name`` headings.

Malformed input raises ValueError naming the offending line.
"""

import logging
import re

logger = logging.getLogger(__name__)

ENTRY_PATTERN = re.compile(r"^([A-Za-z0-9_]+)\((.*)\)$")
EXPRESSION_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*\.[A-Za-z0-9_.]+$")
INTEGER_PATTERN = re.compile(r"^\d+$")
COMPARISON_PATTERN = re.compile(r"[!<>=]")
PHASE_HEADING_PATTERN = re.compile(r"^##\s*([A-Za-z0-9_]+)\s*-\s*(.+)$")

DURATION_ENTRY_ID = "i_intro_duration"


def parse_value(value: str):
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    if INTEGER_PATTERN.match(value):
        return int(value)
    if value in ("true", "false"):
        return value == "true"
    if EXPRESSION_PATTERN.match(value):
        return {"$expr": value}
    return value


def parse_args(arg_text: str) -> dict:
    """Parse ``key=value, key=value`` into a dict.

    Raises
    ------
    ValueError
        If an argument is not of the form ``key=value``
    """
    args = {}
    for part in (piece.strip() for piece in arg_text.split(",")):
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep:
            raise ValueError(f"Argument must be key=value: {part}")
        args[key.strip()] = parse_value(value.strip())
    return args


def normalize_when(when: str) -> str:
    if when and not COMPARISON_PATTERN.search(when):
        return f"{when} == true"
    return when


def negate(when: str) -> str:
    return f"!({when})"


def parse_entry(body: str, when, line_number: int) -> dict:
    match = ENTRY_PATTERN.match(body)
    if not match:
        raise ValueError(f"Invalid entry on line {line_number}: {body}")
    arg_text = match.group(2).strip()
    entry = {"id": match.group(1), "args": parse_args(arg_text) if arg_text else {}}
    if when:
        entry["when"] = when
    return entry


def parse_playlist_dsl(text: str) -> list[dict]:
    """Parse DSL text into ``{id, args, when}`` entries.

    Parameters
    ----------
    text : str
        DSL source

    Returns
    -------
    list of dict
        Entries in source order; ``when`` is omitted for unconditional
        entries

    Raises
    ------
    ValueError
        On a malformed entry, argument or conditional, with its line number

    Examples
    --------
    >>> parse_playlist_dsl("if setup.can_test_kh: t_kh(cadence=weekly)")
    [{'id': 't_kh', 'args': {'cadence': 'weekly'}, 'when': 'setup.can_test_kh == true'}]
    """
    entries = []
    pending_if = None
    last_if = None

    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        if pending_if:
            if line.startswith("else:"):
                raise ValueError(f"Unexpected else without if body on line {line_number}")
            entries.append(parse_entry(line, pending_if, line_number))
            last_if, pending_if = pending_if, None
            continue

        if line.startswith("else:"):
            if not last_if:
                raise ValueError(f"Else without preceding if on line {line_number}")
            body = line[len("else:"):].strip()
            if not body:
                raise ValueError(f"Else missing body on line {line_number}")
            entries.append(parse_entry(body, negate(last_if), line_number))
            last_if = None
            continue

        if line.startswith("if "):
            condition, sep, rest = line[3:].partition(":")
            if not sep:
                raise ValueError(f"Missing ':' in conditional on line {line_number}")
            when = normalize_when(condition.strip())
            rest = rest.strip()
            if not rest:
                pending_if = when
                continue
            then_body, has_else, else_body = rest.partition(" else: ")
            if has_else:
                then_body, else_body = then_body.strip(), else_body.strip()
                if not then_body or not else_body:
                    raise ValueError(f"Invalid if/else on line {line_number}")
                entries.append(parse_entry(then_body, when, line_number))
                entries.append(parse_entry(else_body, negate(when), line_number))
                last_if = None
                continue
            entries.append(parse_entry(rest, when, line_number))
            last_if = when
            continue

        entries.append(parse_entry(line, None, line_number))
        last_if = None

    return entries


def extract_duration_days(entries: list[dict]):
    entry = next((entry for entry in entries if entry["id"] == DURATION_ENTRY_ID), None)
    days = (entry or {}).get("args", {}).get("days")
    if isinstance(days, int) and not isinstance(days, bool):
        return days
    return None


def normalize_entries(entries: list[dict]) -> list[dict]:
    """Lift ``due_offset_days`` (or ``dueOffsetDays``) out of the args."""
    normalized = []
    for entry in entries:
        args = dict(entry.get("args") or {})
        due_offset = args.pop("due_offset_days", None)
        camel_offset = args.pop("dueOffsetDays", None)
        if due_offset is None:
            due_offset = camel_offset
        if due_offset is None:
            due_offset = entry.get("due_offset_days", entry.get("dueOffsetDays"))
        item = {"id": entry["id"], "args": args}
        if entry.get("when"):
            item["when"] = entry["when"]
        if due_offset is not None:
            item["due_offset_days"] = due_offset
        normalized.append(item)
    return normalized


def build_phase_playlists_from_dsl(text: str) -> list[dict]:
    """Split a playbook into per-phase playlists.

    Lines before the first ``## PHASE_ID - Phase name`` heading are ignored.

    Returns
    -------
    list of dict
        ``{phase_id, phase_name, duration_days, sequence}`` per phase, where
        ``duration_days`` comes from an ``i_intro_duration(days=N)`` entry
        (None when absent)
    """
    sections = []
    current = None
    for line in text.splitlines():
        match = PHASE_HEADING_PATTERN.match(line)
        if match:
            current = {"phase_id": match.group(1), "phase_name": match.group(2).strip(), "body": []}
            sections.append(current)
        elif current is not None:
            current["body"].append(line)

    playlists = []
    for section in sections:
        entries = parse_playlist_dsl("\n".join(section["body"]))
        playlists.append({
            "phase_id": section["phase_id"],
            "phase_name": section["phase_name"],
            "duration_days": extract_duration_days(entries),
            "sequence": normalize_entries(entries),
        })
    logger.debug("Built %d phase playlists from DSL", len(playlists))
    return playlists
