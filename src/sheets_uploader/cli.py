#!/usr/bin/env python3
"""Command-line entry point for sheets-uploader."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from sheets_uploader.app import run
from sheets_uploader.cancellation import Cancellation
from sheets_uploader.config import (
    APP_NAME,
    DEFAULT_FILE_TEMPLATE,
    DEFAULT_PATH_TEMPLATE,
    FLAGS,
    resolve_config,
)
from sheets_uploader.exceptions import RunCancelled, UploaderError
from sheets_uploader.logging_config import add_logging_args, build_logger

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130

DESCRIPTION = """\
sheets-uploader saves all sheets of a Google Sheets document to cloud storage
as CSV files.

--path and --filename are templates rendered against the document and each
sheet respectively, e.g. ${properties.title} or ${properties.index}.

If --google-client-secret is not given, the default Google credentials are
used (GOOGLE_APPLICATION_CREDENTIALS, then the gcloud application default
credentials). If it is given, it must be a base64 encoded service-account JSON
because the '\\n' in the JSON is often mangled by the environment.

S3 and CloudFront use the AWS default credentials (environment variables,
~/.aws/credentials, instance role).

Every flag can also be set through an environment variable, e.g.
SHEETS_UPLOADER_SHEET or SHEETS_UPLOADER_BUCKET_URL.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="YAML file with default settings.")
    parser.add_argument("--workers", dest="workers", type=int, help="Number of upload workers (default: 10).")
    parser.add_argument("--sheet", dest="sheet_id", help="Google Sheet ID or URL.")
    parser.add_argument(
        "--google-client-secret",
        dest="google_client_secret",
        metavar="BASE64_JSON",
        help="Base64 encoded JSON of the Google client secret.",
    )
    parser.add_argument(
        "--path",
        dest="path_template",
        help=f"Path to save files in (default: {DEFAULT_PATH_TEMPLATE!r}).",
    )
    parser.add_argument(
        "--filename",
        dest="file_template",
        help=f"File name for files (default: {DEFAULT_FILE_TEMPLATE!r}).",
    )
    parser.add_argument("--bucket-url", dest="bucket_url", metavar="URL", help="URL for destination bucket (default: file://.).")
    parser.add_argument("--dist", dest="cloudfront_dist", metavar="DISTRIBUTION_ID", help="Distribution ID for AWS CloudFront CDN invalidation.")
    parser.add_argument("--cache-control", dest="cache_control", metavar="VALUE", help="Value for Cache-Control header (default: max-age=900,public).")
    parser.add_argument("--crlf", dest="use_crlf", action="store_true", default=None, help="Use Windows-style line endings.")
    parser.add_argument("--shutdown-timeout", dest="shutdown_timeout", type=float, help="Seconds to wait for busy workers when a run aborts (default: 5).")
    add_logging_args(parser)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    cli_values = {field: getattr(args, field, None) for field, _ in FLAGS.values()}

    try:
        config = resolve_config(cli_values, environ=os.environ, config_path=args.config)
        config.logger = build_logger(level=config.log_level, fmt=config.log_format, quiet=config.quiet)
        cancellation = Cancellation()
        with cancellation.on_termination():
            report = run(config, cancellation=cancellation)
    except RunCancelled as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CANCELLED
    except UploaderError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    config.logger.info(
        "done: %d written, %d unchanged%s",
        report.pipeline.written,
        report.pipeline.skipped,
        f", invalidation {report.invalidation_id}" if report.invalidation_id else "",
    )
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
