# === FILE: doccrawler/cli.py ===
#!/usr/bin/env python3
"""
Command-line entry point of DocCrawler.

Commands:
  crawl     Crawl a documentation site and print/save the result
  config    Show the effective configuration

Global options:
  --config PATH       YAML/JSON config file (optional when URL is given)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout only when omitted)
  --log-format FORMAT Logging format string
  --version, -v       Show the DocCrawler version

crawl options:
  URL                 Start URL (overrides base_url from the config)
  --max-depth INT     Override max_depth
  --force-strategy    static | rendered (aliases: cheerio, puppeteer)
  --json PATH         Save the JSON report to a file
  --pretty            Indent JSON output
  --crawl-timeout SEC Timeout for the whole crawl (seconds)

Example:
  doccrawler --config configs/default.yaml crawl https://docs.example.com --max-depth 2 --json out.json
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from doccrawler import __version__
from doccrawler.config import STRATEGY_ALIASES, CrawlConfig, load_config
from doccrawler.engine import run_crawl
from doccrawler.logger import init_logging
from doccrawler.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg="red", err=True)
    sys.exit(1)


def build_config(config_path, **overrides) -> CrawlConfig:
    """Config from file when given, else from *overrides* alone."""
    if config_path is not None:
        return load_config(config_path, **overrides)
    return CrawlConfig(**{k: v for k, v in overrides.items() if v is not None})


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "--version", "-v", message="DocCrawler, version %(version)s")
@click.option(
    "--config", "-c", "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a YAML or JSON config file.",
)
@click.option(
    "--log-level", "log_level",
    default="INFO", show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Logging level",
)
@click.option(
    "--log-file", "log_file",
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help="Log file (stdout when omitted)",
)
@click.option(
    "--log-format", "log_format",
    default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    show_default=True,
    help="Logging format string",
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """DocCrawler command group."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format,
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command("crawl", context_settings=CONTEXT_SETTINGS)
@click.argument("url", required=False)
@click.option("--max-depth", "-d", "max_depth", type=click.IntRange(min=0), default=None, help="Override max_depth")
@click.option(
    "--force-strategy", "force_strategy",
    type=click.Choice(sorted(STRATEGY_ALIASES), case_sensitive=False),
    default=None,
    help="Skip page-type detection and always use this extractor",
)
@click.option(
    "--json", "-j", "json_output",
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help="Save the JSON report to a file",
)
@click.option("--pretty", is_flag=True, help="Indent JSON output (2 spaces)")
@click.option("--crawl-timeout", "crawl_timeout", type=float, default=None, help="Timeout for the whole crawl (seconds)")
@click.pass_context
def crawl(ctx, url, max_depth, force_strategy, json_output, pretty, crawl_timeout):
    """Crawl a documentation site and report the job and its documents."""
    config_path = ctx.obj.get("config_path")
    if url is None and config_path is None:
        print_error("Either a URL or --config with base_url is required")
    try:
        cfg = build_config(config_path, base_url=url, max_depth=max_depth, force_strategy=force_strategy)
    except (ValidationError, FileNotFoundError, ValueError, TypeError) as e:
        print_error(f"Failed to load configuration: {e}")

    click.echo(f"Starting crawl of {cfg.base_url}", err=True)
    try:
        if crawl_timeout:
            result = asyncio.run(asyncio.wait_for(run_crawl(cfg), timeout=crawl_timeout))
        else:
            result = asyncio.run(run_crawl(cfg))
    except asyncio.TimeoutError:
        print_error(f"Crawl did not finish within {crawl_timeout} seconds")
    except Exception as e:
        print_error(f"Crawl failed: {e}")

    if json_output:
        try:
            saved = render_json(result, json_output, pretty=pretty)
        except OSError as e:
            print_error(f"Failed to save JSON report: {e}")
        click.echo(f"JSON report: {saved}")
        return

    indent = 2 if pretty else None
    click.echo(json.dumps(result.to_dict(include_content=False), ensure_ascii=False, indent=indent))


@cli.command("config", context_settings=CONTEXT_SETTINGS)
@click.argument("url", required=False)
@click.pass_context
def show_config(ctx, url):
    """Show the effective configuration as JSON."""
    config_path = ctx.obj.get("config_path")
    if url is None and config_path is None:
        print_error("Either a URL or --config with base_url is required")
    try:
        cfg = build_config(config_path, base_url=url)
    except (ValidationError, FileNotFoundError, ValueError, TypeError) as e:
        print_error(f"Failed to load configuration: {e}")
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
