"""dmarc-engine CLI. Policy discovery and per-message DMARC decisions."""

import logging
import os
import sys
from typing import Optional

import click

from . import __version__
from .config import EngineConfig
from .dns_fetcher import create_fetcher
from .engine import DmarcEngine
from .exceptions import ConfigurationError, DmarcEngineError
from .logging_config import configure_logging
from .models import Disposition
from .report_json import JsonReporter
from .report_text import TextReporter
from .suffix_matcher import load_suffix_list

_FORMAT_OPTION = click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)


@click.group()
@click.version_option(version=__version__, prog_name="dmarc-engine")
@click.option(
    "--suffix-list", type=click.Path(dir_okay=False), default=None,
    help="Public suffix list file. Defaults to DMARC_SUFFIX_LIST.",
)
@click.option(
    "--nameserver", "nameservers", multiple=True,
    help="Nameserver IP to query, repeatable. Defaults to DMARC_NAMESERVERS or the system resolver.",
)
@click.option("--timeout", type=float, default=None, help="Per-query DNS timeout in seconds.")
@click.option("--no-cache", is_flag=True, help="Disable the in-memory DNS cache.")
@click.option(
    "--relaxed/--strict", "relaxed", default=None,
    help="Honor relaxed adkim/aspf alignment (default: strict exact-domain alignment).",
)
@click.option(
    "--nonexistent",
    type=click.Choice([d.value for d in Disposition]),
    default=None,
    help="Disposition for From domains with no DNS presence.",
)
@click.option("-v", "--verbose", count=True, help="-v for info logs, -vv for debug logs.")
@click.pass_context
def cli(ctx, suffix_list, nameservers, timeout, no_cache, relaxed, nonexistent, verbose):
    """DMARC policy engine.

    Discovers the DMARC policy a From domain publishes and decides whether a
    message is aligned and what disposition applies.
    """
    configure_logging(logging.WARNING - 10 * min(verbose, 2))
    try:
        config = EngineConfig.from_env()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if suffix_list:
        config.suffix_list_path = suffix_list
    if nameservers:
        config.nameservers = list(nameservers)
    if timeout is not None:
        config.dns_timeout = timeout
    if no_cache:
        config.use_cache = False
    if relaxed is not None:
        config.honor_relaxed_alignment = relaxed
    if nonexistent:
        config.nonexistent_disposition = Disposition(nonexistent)
    ctx.obj = config


@cli.command("org-domain")
@click.argument("domain")
@_FORMAT_OPTION
@click.pass_obj
def org_domain(config: EngineConfig, domain: str, output_format: str):
    """Print the organizational domain of DOMAIN."""
    try:
        engine = build_engine(config)
        result = engine.organizational_domain(domain)
    except DmarcEngineError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(JsonReporter().render_org_domain(domain, result))
    else:
        TextReporter().render_org_domain(domain, result)


@cli.command("discover")
@click.argument("domain")
@_FORMAT_OPTION
@click.pass_obj
def discover(config: EngineConfig, domain: str, output_format: str):
    """Discover the DMARC policy that applies to mail from DOMAIN."""
    try:
        engine = build_engine(config)
        discovery = engine.discover(domain)
    except DmarcEngineError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(JsonReporter().render_discovery(domain, discovery))
    else:
        TextReporter().render_discovery(domain, discovery)


@cli.command("evaluate")
@click.option("--from-host", default=None, help="RFC 5322 From domain.")
@click.option("--from-header", default=None, help="Raw From header value; the domain is extracted.")
@click.option("--dkim", "dkim_domains", multiple=True, help="Domain with a passing DKIM signature, repeatable.")
@click.option("--spf", "spf_domain", default=None, help="Domain that passed SPF.")
@_FORMAT_OPTION
@click.pass_obj
def evaluate(
    config: EngineConfig,
    from_host: Optional[str],
    from_header: Optional[str],
    dkim_domains: tuple,
    spf_domain: Optional[str],
    output_format: str,
):
    """Decide alignment and disposition for one message."""
    if from_host and from_header:
        raise click.UsageError("--from-host and --from-header are mutually exclusive")
    try:
        engine = build_engine(config)
        decision = run_check(engine, from_host, from_header, list(dkim_domains), spf_domain)
    except DmarcEngineError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(JsonReporter().render_decision(decision))
    else:
        TextReporter().render_decision(decision)


@cli.command("serve")
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address.")
@click.option("--port", default=8000, show_default=True, type=int, help="Listen port.")
@click.option(
    "--api-key",
    envvar="DMARC_API_KEY",
    required=True,
    help="Bearer token for API authentication. Also read from DMARC_API_KEY env var.",
)
@click.option("--workers", default=1, show_default=True, type=int, help="Uvicorn worker count.")
@click.pass_obj
def serve(config: EngineConfig, host: str, port: int, api_key: str, workers: int):
    """Start the REST API server."""
    import uvicorn  # noqa: PLC0415

    # Workers are separate processes and rebuild their config from the environment.
    os.environ["DMARC_API_KEY"] = api_key
    if config.suffix_list_path:
        os.environ["DMARC_SUFFIX_LIST"] = config.suffix_list_path
    if config.nameservers:
        os.environ["DMARC_NAMESERVERS"] = ",".join(config.nameservers)
    os.environ["DMARC_DNS_TIMEOUT"] = str(config.dns_timeout)
    os.environ["DMARC_DNS_RETRIES"] = str(config.dns_retries)
    os.environ["DMARC_DNS_CACHE"] = "true" if config.use_cache else "false"
    os.environ["DMARC_RELAXED_ALIGNMENT"] = "true" if config.honor_relaxed_alignment else "false"
    os.environ["DMARC_NONEXISTENT_DISPOSITION"] = config.nonexistent_disposition.value

    click.echo(f"Starting DMARC API server on http://{host}:{port}", err=True)
    click.echo(f"API docs: http://{host}:{port}/docs", err=True)
    uvicorn.run(
        "dmarc_engine.api_server:app",
        host=host,
        port=port,
        workers=workers,
        log_level="info",
    )


# ── Orchestration ──────────────────────────────────────────────────────────────

def build_engine(config: EngineConfig) -> DmarcEngine:
    if not config.suffix_list_path:
        raise ConfigurationError(
            "No public suffix list configured: pass --suffix-list or set DMARC_SUFFIX_LIST"
        )
    matcher = load_suffix_list(config.suffix_list_path)
    return DmarcEngine(create_fetcher(config), matcher, config)


def run_check(
    engine: DmarcEngine,
    from_host: Optional[str],
    from_header: Optional[str],
    dkim_domains: list,
    spf_domain: Optional[str],
):
    if from_header is not None:
        return engine.check_header(from_header, dkim_domains, spf_domain)
    return engine.check(from_host, dkim_domains, spf_domain)
