"""
Command-line entry point: analyze a transcript file and print the result JSON.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from policyscan.exceptions import ConfigurationError, EmptyTextError
from policyscan.pipelines.analysis_pipeline import build_pipeline
from policyscan.schemas.analysis_schemas import ChannelContext
from policyscan.utils.logging_config import init_logging


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Analyze a transcript or description for content policy risk.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a transcript (credentials from .env)
  python -m policyscan.cli transcript.txt

  # Read from stdin, include channel context for AI-content detection
  cat transcript.txt | python -m policyscan.cli - --channel-context '{"subscriber_count": 25000}'
        """,
    )
    parser.add_argument(
        "file",
        help="Path to a UTF-8 text file, or '-' for stdin.",
    )
    parser.add_argument(
        "--channel-context",
        type=str,
        default=None,
        help="Channel context as a JSON object (enables AI-content detection).",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        help="Indent the JSON output.",
    )

    args = parser.parse_args(argv)
    init_logging()

    if args.file == "-":
        text = sys.stdin.read()
    else:
        path = Path(args.file).expanduser()
        if not path.exists():
            raise SystemExit(f"File does not exist: {path}")
        text = path.read_text(encoding="utf-8")

    channel_context = None
    if args.channel_context:
        try:
            channel_context = ChannelContext.model_validate_json(args.channel_context)
        except ValidationError as e:
            raise SystemExit(f"Invalid --channel-context: {e}")

    try:
        pipeline = build_pipeline()
    except ConfigurationError as e:
        raise SystemExit(e.message)

    try:
        result = asyncio.run(pipeline.analyze(text, channel_context=channel_context))
    except EmptyTextError as e:
        raise SystemExit(e.message)

    print(json.dumps(result.model_dump(mode="json"), indent=2 if args.pretty else None, ensure_ascii=False))


if __name__ == "__main__":
    main()
