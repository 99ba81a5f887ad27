#!/usr/bin/env python3
"""
rowpost - Command Line Entry Point

Runs the row-to-request bridge outside a data engine:
1. Loads configuration (.env, optional YAML file, environment, flags)
2. Starts an explicitly owned HTTP client
3. Sends one POST per input line on a thread pool
4. Prints one result column per line and a summary

All bridge logic is in the modules, following black box principles.
"""

import json
import logging
import sys
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from rowpost.config.provider import build_bridge_config, get_config_provider, parse_headers
from rowpost.logging_config import configure_logging
from rowpost.modules.api import BridgeResult, ConfigError
from rowpost.modules.bridge import RowRequestBridge
from rowpost.modules.client import AsyncHttpClient
from rowpost.modules.udf import map_rows

logger = logging.getLogger("rowpost.cli")

console = Console(stderr=True)


def _parse_header_options(headers: Tuple[str, ...]) -> Dict[str, str]:
    parsed = {}
    for header in headers:
        name, sep, value = header.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected Name:value, got '{header}'", param_hint="--header")
        parsed[name.strip()] = value.strip()
    return parsed


def load_config(
    url: Optional[str] = None,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
    headers: Optional[Dict[str, str]] = None,
    content_type: Optional[str] = None,
):
    """Merge provider values with command line overrides and validate."""
    values: Dict[str, Any] = get_config_provider().get_values()
    if url:
        values["endpoint_url"] = url
    if timeout is not None:
        values["request_timeout"] = timeout
    if content_type:
        values["content_type"] = content_type
    if headers:
        merged = parse_headers(values.get("headers") or {})
        merged.update(headers)
        values["headers"] = merged
    if retries is not None:
        retry = dict(values.get("retry") or {})
        retry["max_attempts"] = retries + 1
        values["retry"] = retry
    return build_bridge_config(values)


def _read_payloads(stream) -> List[str]:
    payloads = []
    for line in stream:
        line = line.rstrip("\r\n")
        if line:
            payloads.append(line)
    return payloads


def _print_summary(results: List[BridgeResult]) -> None:
    counts = Counter(r.outcome.value for r in results)
    kinds = Counter(r.error_kind.value for r in results if r.error_kind)

    table = Table(title="Request Summary")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")
    for outcome, count in sorted(counts.items()):
        table.add_row(outcome, str(count))
    for kind, count in sorted(kinds.items()):
        table.add_row(f"  {kind}", str(count), style="dim")
    console.print(table)

    ok = counts.get("success", 0)
    colour = "green" if ok == len(results) else "red"
    console.print(f"[bold {colour}]{ok}/{len(results)} rows succeeded[/bold {colour}]")


@click.group()
@click.option("--log-level", default=None, help="Logging level (default: $LOG_LEVEL or INFO)")
def cli(log_level: Optional[str]):
    """Send row payloads as HTTP POST requests."""
    configure_logging(log_level)


@cli.command()
@click.option("--url", default=None, help="Endpoint URL (default: $ROWPOST_ENDPOINT_URL)")
@click.option("--file", "input_file", type=click.File("r"), default="-", help="Payloads, one per line")
@click.option("--workers", default=8, show_default=True, type=click.IntRange(min=1))
@click.option("--timeout", default=None, type=click.FloatRange(min=0, min_open=True))
@click.option("--retries", default=None, type=click.IntRange(min=0))
@click.option("--header", "headers", multiple=True, help="Extra header as Name:value")
@click.option("--content-type", default=None)
@click.option("--quiet", is_flag=True, help="Skip the summary table")
def send(url, input_file, workers, timeout, retries, headers, content_type, quiet):
    """POST every non-blank input line and print one result per line.

    Blank lines are skipped, so output lines follow the non-blank input lines.
    """
    try:
        config = load_config(
            url=url,
            timeout=timeout,
            retries=retries,
            headers=_parse_header_options(headers),
            content_type=content_type,
        )
    except ConfigError as e:
        raise click.UsageError(str(e))

    payloads = _read_payloads(input_file)
    logger.info(f"Sending {len(payloads)} payloads to {config.endpoint_url} with {workers} workers")

    with AsyncHttpClient(config) as client:
        bridge = RowRequestBridge(client, config)
        results = map_rows(bridge.send, payloads, max_workers=workers)

    for result in results:
        click.echo(result.to_column())

    if not quiet:
        _print_summary(results)

    if not all(r.ok for r in results):
        sys.exit(1)


@cli.command("config")
@click.option("--url", default=None)
def show_config(url):
    """Print the effective configuration (token masked)."""
    try:
        config = load_config(url=url)
    except ConfigError as e:
        raise click.UsageError(str(e))
    click.echo(json.dumps(config.to_display_dict(), indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
