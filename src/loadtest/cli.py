from __future__ import annotations

import argparse
import asyncio
from typing import Sequence

from loadtest.config import ConfigError, LoadTestConfig, OutputFormat
from loadtest.loadgen.runner import run_load_test
from loadtest.logging_config import setup_logging
from loadtest.reporting import ProgressPrinter, render


def _parse_headers(parser: argparse.ArgumentParser, raw: Sequence[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            parser.error(f"invalid header {item!r}, expected 'Name: value'")
        headers[name.strip()] = value.strip()
    return headers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HTTP load tester")
    parser.add_argument("--url", required=True, help="URL to test")
    parser.add_argument("--requests", type=int, required=True, help="Number of requests to make")
    parser.add_argument("--concurrency", type=int, default=1, help="Number of concurrent requests")
    parser.add_argument("--timeout", type=float, default=10.0, help="Timeout for each request, in seconds")
    parser.add_argument("--method", default="GET", help="HTTP method to use")
    parser.add_argument("--header", action="append", default=[], help="Request header as 'Name: value'")
    parser.add_argument("--body", default="", help="Request body")
    parser.add_argument("--format", choices=[f.value for f in OutputFormat], default=OutputFormat.PLAIN.value)
    parser.add_argument("--max-redirects", type=int, default=10)
    parser.add_argument("--no-follow-redirects", action="store_true")
    parser.add_argument("--no-progress", action="store_true", help="Do not draw the progress line")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-file", default=None)
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)
    config = LoadTestConfig(
        url=args.url,
        requests=args.requests,
        concurrency=args.concurrency,
        timeout_sec=args.timeout,
        method=args.method.upper(),
        headers=_parse_headers(parser, args.header),
        body=args.body,
        output_format=OutputFormat(args.format),
        follow_redirects=not args.no_follow_redirects,
        max_redirects=args.max_redirects,
    )
    try:
        config.validate()
    except ConfigError as exc:
        parser.error(str(exc))

    progress = None if args.no_progress else ProgressPrinter()
    report = asyncio.run(run_load_test(config, on_progress=progress))
    print(render(report, config.output_format, config), end="")


if __name__ == "__main__":
    main()
