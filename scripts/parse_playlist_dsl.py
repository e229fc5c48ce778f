#!/usr/bin/env python3
"""Compile a playlist DSL playbook into phase playlist JSON.

Usage
-----
Print playlists for a playbook::

    python scripts/parse_playlist_dsl.py playbook.dsl

Write them next to the engine package::

    python scripts/parse_playlist_dsl.py playbook.dsl -o phase_playlists.json

A file without ``## PHASE_ID - Phase name`` headings is parsed as a single
flat entry list instead.
"""

import argparse
import json
import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from aquatrack.engine.playlist_dsl import PHASE_HEADING_PATTERN, build_phase_playlists_from_dsl, parse_playlist_dsl


def main():
    parser = argparse.ArgumentParser(description="Compile playlist DSL to JSON")
    parser.add_argument("source", help="Path to DSL file")
    parser.add_argument("-o", "--output", help="Write JSON here instead of stdout")
    args = parser.parse_args()

    text = Path(args.source).read_text(encoding="utf-8")
    try:
        if any(PHASE_HEADING_PATTERN.match(line) for line in text.splitlines()):
            result = {"playlists": build_phase_playlists_from_dsl(text)}
        else:
            result = parse_playlist_dsl(text)
    except ValueError as exc:
        print(f"{args.source}: {exc}", file=sys.stderr)
        return 1

    output = json.dumps(result, indent=2)
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
