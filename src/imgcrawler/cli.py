"""
Command-line interface for the crawler.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from imgcrawler.core import CrawlConfig
from imgcrawler.events import CrawlEvent, EventType
from imgcrawler.fetch import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from imgcrawler.jobs import CrawlJob, JobStatus, run_job
from imgcrawler.render import DEFAULT_RENDER_TIMEOUT


def format_event(event: CrawlEvent) -> str:
    """Render an event as a single human-readable line."""
    if event.type is EventType.DOMAIN_PROGRESS:
        return f"[{event.type.value}] {event.domain}: {event.pages_visited} pages"
    if event.type is EventType.DOMAIN_DONE:
        return (
            f"[{event.type.value}] {event.domain} "
            f"({event.pages_visited} pages, {event.processed_domains} domains done)"
        )
    return f"[{event.type.value}] {event.message or ''}"


def print_summary(job: CrawlJob, counts: Counter) -> None:
    """Print crawl summary to stderr."""
    sys.stderr.write("=" * 50 + "\n")
    sys.stderr.write("CRAWL SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Status:                 {job.status.value}\n")
    sys.stderr.write(f"Domains processed:      {counts[EventType.DOMAIN_DONE]}\n")
    sys.stderr.write(f"Pages fetched:          {counts[EventType.PROGRESS]}\n")
    sys.stderr.write(f"Unique image URLs:      {len(job.results)}\n")
    sys.stderr.write(f"Warnings:               {counts[EventType.WARN]}\n")
    if counts[EventType.ERROR]:
        sys.stderr.write(f"Errors:                 {counts[EventType.ERROR]}\n")
    sys.stderr.write("\n")


def generate_output_path() -> Path:
    """Generate output path: crawls/images_{datetime}.txt"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    crawls_dir = Path("crawls")
    crawls_dir.mkdir(exist_ok=True)

    return crawls_dir / f"images_{timestamp}.txt"


async def watch_events(job: CrawlJob, json_events: bool, verbose: bool) -> Counter:
    """Stream job events to stderr until the job closes its log."""
    counts: Counter = Counter()
    async for event in job.events.subscribe():
        counts[event.type] += 1
        if json_events:
            sys.stderr.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
        elif verbose or event.type is not EventType.PROGRESS:
            sys.stderr.write(format_event(event) + "\n")
        sys.stderr.flush()
    return counts


async def run(source: str, config: CrawlConfig, json_events: bool, verbose: bool):
    job = CrawlJob()
    watcher = asyncio.create_task(watch_events(job, json_events, verbose))
    await run_job(job, source, config)
    counts = await watcher
    return job, counts


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl a list of domains breadth-first and collect the image URLs they reference."
    )
    parser.add_argument("source", help="Domain list: a local file or a URL to a newline-separated list")
    parser.add_argument("--concurrency", type=int, default=200, help="Domains crawled in parallel (default: 200)")
    parser.add_argument("--max-pages", type=int, default=20, help="Maximum pages per domain (default: 20)")
    parser.add_argument("--max-depth", type=int, default=2, help="Maximum link depth from the home page (default: 2)")
    parser.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT,
        help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT:g})",
    )
    parser.add_argument(
        "--render-timeout", type=float, default=DEFAULT_RENDER_TIMEOUT,
        help=f"Browser navigation timeout in seconds (default: {DEFAULT_RENDER_TIMEOUT:g})",
    )
    parser.add_argument("--no-render", action="store_true", help="Never fall back to headless rendering")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("--out", help="Output file path, or '-' for stdout (default: auto-generated in crawls/)")
    parser.add_argument("--json-events", action="store_true", help="Print events as JSON lines")
    parser.add_argument("--verbose", action="store_true", help="Show every page fetch and debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the crawler CLI."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )

    try:
        config = CrawlConfig(
            concurrency=args.concurrency,
            max_pages_per_domain=args.max_pages,
            max_depth=args.max_depth,
            request_timeout=args.timeout,
            render_timeout=args.render_timeout,
            render=not args.no_render,
            user_agent=args.user_agent,
        )
    except ValueError as e:
        sys.stderr.write(f"error: {e}\n")
        return 2

    job, counts = asyncio.run(run(args.source, config, args.json_events, args.verbose))

    print_summary(job, counts)

    if job.status is JobStatus.DONE:
        text = job.export_results()
        if args.out == "-":
            print(text)
        else:
            output_path = Path(args.out) if args.out else generate_output_path()
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(text + "\n" if text else "", encoding="utf-8")
            sys.stderr.write(f"Results written to: {output_path}\n")

    return 0 if job.status is JobStatus.DONE else 1


if __name__ == "__main__":
    raise SystemExit(main())
