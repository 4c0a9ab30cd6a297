"""
Command-line entry point.

Usage:
    python -m stafind match "Looking for a Go developer with SQL"
    python -m stafind extract --request-id req-1 --type candidate_extraction cv1.txt cv2.txt
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path

from stafind.pipeline import POST_PROCESSORS, build_pipeline
from stafind.shared.config import load_settings
from stafind.shared.errors import StafindError
from stafind.shared.structured_logging import configure_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="stafind", description="Skill extraction and candidate matching")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    match = subparsers.add_parser("match", help="Extract skills from a request and rank candidates")
    match.add_argument("text", help="Job request or chat message")
    match.add_argument("--preferred", default="", help="Comma-separated preferred skills (optional)")
    match.add_argument("--department", default=None, help="Requested department (bonus, optional)")
    match.add_argument("--level", default=None, help="Requested experience level, e.g. senior (bonus, optional)")
    match.add_argument("--location", default=None, help="Requested location (bonus, optional)")

    extract = subparsers.add_parser("extract", help="Run a tracked extraction over text files")
    extract.add_argument("files", nargs="+", type=Path, help="Text files, one per resume")
    extract.add_argument("--request-id", default=None, help="Extraction request id (generated if omitted)")
    extract.add_argument(
        "--type",
        dest="processing_type",
        default="generic",
        choices=sorted(POST_PROCESSORS),
        help="Output shape",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point; returns the process exit code."""
    args = _parse_args(argv)
    configure_logging(getattr(logging, args.log_level.upper(), logging.INFO))

    try:
        pipeline = build_pipeline(load_settings())
        if args.command == "match":
            preferred = [s.strip() for s in args.preferred.split(",") if s.strip()]
            output = pipeline.extract_and_match(
                args.text,
                preferred=preferred,
                department=args.department,
                level=args.level,
                location=args.location,
            ).to_dict()
        else:
            texts = [path.read_text(encoding="utf-8") for path in args.files]
            batch = pipeline.process_batch(
                texts, args.request_id or str(uuid.uuid4()), processing_type=args.processing_type
            )
            output = {
                "request_id": batch.request_id,
                "files_processed": batch.files_processed,
                "files_failed": batch.files_failed,
                "job": batch.job.to_dict() if batch.job else None,
                "results": [f.result if f.error is None else {"error": f.error} for f in batch.files],
            }
    except (StafindError, OSError) as e:
        logger.error(f"stafind {args.command} failed: {e}")
        return 1

    print(json.dumps(output, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
