from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from sessionlens.app.runner import ingest, parse_file
from sessionlens.features.decoder.types import SessionError, SessionSource
from sessionlens.features.digest.service import render_session
from sessionlens.features.pipeline.service import FAILURE_MESSAGE

SOURCES = [s.value for s in SessionSource]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="sessionlens")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_parse = sub.add_parser("parse", help="Analyze one session payload file")
    p_parse.add_argument("path")
    p_parse.add_argument("--source", choices=SOURCES, default="auto")
    p_parse.add_argument("--config", default=None)
    p_parse.add_argument("--text", action="store_true", help="Print a plain-text digest instead of JSON")

    p_ingest = sub.add_parser("ingest", help="Analyze a directory of payload files into DuckDB")
    p_ingest.add_argument("input_dir")
    p_ingest.add_argument("--config", default="config/sessionlens.yaml")
    p_ingest.add_argument("--source", choices=SOURCES, default="auto")

    args = parser.parse_args(argv)

    if args.cmd == "parse":
        try:
            outcome = parse_file(args.path, source=args.source, config_path=args.config)
        except SessionError as e:
            print(f"{FAILURE_MESSAGE}: {e.reason}", file=sys.stderr)
            return 2
        if args.text:
            print(render_session(outcome.session))
        else:
            print(json.dumps(outcome.as_dict(), indent=2, ensure_ascii=False))
        return 0

    if args.cmd == "ingest":
        if not Path(args.input_dir).is_dir():
            print(f"not a directory: {args.input_dir}", file=sys.stderr)
            return 2
        result = ingest(args.config, args.input_dir, source=args.source)
        # minimal stdout signal
        print(f"analyzed={len(result.analyzed)} empty={len(result.empty)} failed={len(result.failed)}")
        return 0 if not result.failed else 1

    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
