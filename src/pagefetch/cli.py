"""Command-line interface for pagefetch."""

import asyncio
import json
import sys
from typing import Optional

from pagefetch.config import CrawlerSettings, settings
from pagefetch.content import (
    BM25ContentFilter,
    JsonCssExtractionStrategy,
    JsonXPathExtractionStrategy,
    PruningContentFilter,
)
from pagefetch.crawler import AsyncWebCrawler
from pagefetch.errors import CrawlFailed
from pagefetch.logging_config import setup_logging
from pagefetch.models import (
    FixedWait,
    JsConditionWait,
    NetworkIdleWait,
    SelectorWait,
    WaitSpec,
    XPathWait,
)


def parse_wait_spec(value: str, timeout: Optional[float] = None) -> WaitSpec:
    """Parse a --wait-for value.

    Accepted forms: fixed:MS, css:SELECTOR, xpath:EXPRESSION, js:EXPRESSION,
    networkidle, networkidle:MS (idle window).

    Args:
        value: Raw argument
        timeout: Wait timeout in seconds for condition waits

    Returns:
        WaitSpec
    """
    kind, _, arg = value.partition(":")
    kind = kind.strip().lower()

    try:
        if kind == "fixed":
            return FixedWait(float(arg) / 1000)
        if kind == "css" and arg:
            return SelectorWait(arg, timeout=timeout)
        if kind == "xpath" and arg:
            return XPathWait(arg, timeout=timeout)
        if kind == "js" and arg:
            return JsConditionWait(arg, timeout=timeout)
        if kind == "networkidle":
            idle_window = float(arg) / 1000 if arg else None
            return NetworkIdleWait(idle_window=idle_window, timeout=timeout)
    except ValueError as e:
        raise ValueError(f"Invalid --wait-for value {value!r}: {e}") from e

    raise ValueError(
        f"Invalid --wait-for value {value!r} "
        "(expected fixed:MS, css:SEL, xpath:EXPR, js:EXPR or networkidle[:MS])"
    )


def build_content_filter(name: Optional[str], query: Optional[str]):
    if name == "pruning":
        return PruningContentFilter()
    if name == "bm25":
        return BM25ContentFilter(user_query=query)
    return None


def load_extraction_strategy(schema_path: Optional[str], schema_type: str):
    if not schema_path:
        return None
    with open(schema_path, "r") as f:
        schema = json.load(f)
    if schema_type == "xpath":
        return JsonXPathExtractionStrategy(schema)
    return JsonCssExtractionStrategy(schema)


def render_output(result, output_format: str) -> str:
    """Render a CrawlResult in the requested output format."""
    if output_format == "json":
        return json.dumps(result.to_dict(), indent=2, default=str)
    if output_format == "raw-html":
        return result.html
    markdown = result.markdown
    if markdown is None:
        return ""
    if markdown.fit_markdown is not None:
        return markdown.fit_markdown
    return markdown.raw_markdown


async def _crawl(args, crawler_settings: CrawlerSettings):
    options = {
        "session_key": args.session,
        "page_timeout": args.page_timeout,
        "wait_timeout": args.wait_timeout,
        "max_attempts": args.max_attempts,
        "screenshot": args.screenshot or bool(args.screenshot_file),
        "content_filter": build_content_filter(args.content_filter, args.query),
        "extraction_strategy": load_extraction_strategy(args.schema, args.schema_type),
    }
    if args.retry_404:
        options["retry_404"] = True
    if args.wait_for:
        options["wait"] = parse_wait_spec(args.wait_for, timeout=args.wait_timeout)

    async with AsyncWebCrawler(settings=crawler_settings) as crawler:
        return await crawler.arun(args.url, **options)


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(
        description="pagefetch - Fetch fully rendered web pages as markdown, HTML or JSON"
    )
    parser.add_argument("url", help="URL to fetch")
    parser.add_argument(
        "--output",
        "-o",
        help="Write output to file instead of stdout",
    )
    parser.add_argument(
        "--format",
        choices=["markdown", "json", "raw-html"],
        default="markdown",
        help="Output format (default: markdown)",
    )
    parser.add_argument(
        "--screenshot",
        action="store_true",
        help="Capture a full-page screenshot (included in json output)",
    )
    parser.add_argument(
        "--screenshot-file",
        help="Write the screenshot PNG to this path",
    )
    parser.add_argument(
        "--session",
        help="Session key; requests sharing a key share cookies and storage",
    )
    parser.add_argument(
        "--wait-for",
        help="Readiness wait: fixed:MS, css:SEL, xpath:EXPR, js:EXPR or networkidle[:MS]",
    )
    parser.add_argument(
        "--wait-timeout",
        type=float,
        help="Timeout in seconds for condition waits",
    )
    parser.add_argument(
        "--page-timeout",
        type=float,
        help="Timeout in seconds for each attempt",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        help="Maximum attempts before giving up",
    )
    parser.add_argument(
        "--retry-404",
        action="store_true",
        help="Retry on HTTP 404 like a server error",
    )
    parser.add_argument(
        "--content-filter",
        choices=["none", "pruning", "bm25"],
        default="none",
        help="Filter producing fit markdown (default: none)",
    )
    parser.add_argument(
        "--query",
        help="Query for the bm25 content filter (default: derived from the page)",
    )
    parser.add_argument(
        "--schema",
        help="JSON extraction schema file",
    )
    parser.add_argument(
        "--schema-type",
        choices=["css", "xpath"],
        default="css",
        help="Selector language of the extraction schema (default: css)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL.upper(),
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Write logs to file in addition to stderr",
    )
    return parser


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        crawler_settings = CrawlerSettings.from_env()
        if args.wait_for:
            parse_wait_spec(args.wait_for)
    except ValueError as e:
        parser.error(str(e))

    try:
        result = asyncio.run(_crawl(args, crawler_settings))
    except (CrawlFailed, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.screenshot_file and result.screenshot is not None:
        with open(args.screenshot_file, "wb") as f:
            f.write(result.screenshot)

    output = render_output(result, args.format)
    if args.output:
        with open(args.output, "w") as f:
            f.write(output)
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(output)


if __name__ == "__main__":
    main()
