"""cli.py – iSummarize Command-Line Interface

Runs the digest pipeline either *locally* (in-process) or *remotely* by
calling the HTTP API of a running server.

Usage examples
--------------
# Local execution
$ isummarize digest --dry-run                       # print the report
$ isummarize digest --recipient U0123ABCD           # post it as a DM
$ isummarize schedule --recipient U0123ABCD -i 3600 # run the loop in the foreground

# Remote execution – forward the request over HTTP
$ isummarize --api-url http://localhost:8080 digest --recipient U0123ABCD

Environment variables
---------------------
ISUMMARIZE_API_URL  If set, acts like the --api-url option (handy for scripts).
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, Optional
import json

import click
from dotenv import load_dotenv

from isummarize import cloud_logging as logging
from isummarize.errors import ConfigError

# ---------------------------------------------------------------------------
# HTTP helper (remote execution)
# ---------------------------------------------------------------------------


def _post_json(url: str, payload: Dict[str, Any]) -> Any:
    """POST a JSON payload and return the decoded JSON response."""
    import requests

    logging.log_text(
        f"POST {url} – payload size: {len(json.dumps(payload))} bytes", severity="DEBUG"
    )
    try:
        response = requests.post(url, json=payload, timeout=300)
    except requests.RequestException as exc:
        raise click.ClickException(f"HTTP call failed: {exc}") from exc

    try:
        body = response.json()
    except ValueError:
        body = {"status": "error", "message": response.text}
    if response.status_code >= 400:
        raise click.ClickException(
            f"Server answered {response.status_code}: {body.get('message') or body.get('status')}"
        )
    return body


def _local_services():
    from isummarize.settings import load_settings
    from isummarize.verbs import build_services

    try:
        return build_services(load_settings())
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# Click entry-point
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--api-url",
    envvar="ISUMMARIZE_API_URL",
    default=None,
    metavar="URL",
    help="If provided, CLI commands are forwarded to the HTTP API at this URL "
    "instead of running locally.",
)
@click.pass_context
def cli(ctx: click.Context, api_url: Optional[str]):  # noqa: D401 – Click callback
    """iSummarize command-line interface."""
    load_dotenv()
    ctx.obj = {"api_url": api_url}


# ---------------------------------------------------------------------------
# `digest` command – one cycle
# ---------------------------------------------------------------------------


@cli.command("digest", help="Summarize the last day of joined channels once.")
@click.option(
    "-r",
    "--recipient",
    default=None,
    metavar="USER_ID",
    help="Slack user ID that receives the report as a direct message.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the report instead of posting it.",
)
@click.pass_context
def digest_command(ctx: click.Context, recipient: Optional[str], dry_run: bool) -> None:
    """Run collect → summarize → format (→ deliver) once."""
    api_url: Optional[str] = ctx.obj.get("api_url") if ctx.obj else None

    if not dry_run and not recipient and not api_url:
        raise click.UsageError("--recipient is required unless --dry-run is given.")

    if api_url:
        payload = {"user_id": recipient, "deliver": not dry_run}
        result = _post_json(api_url.rstrip("/") + "/summarize", payload)
        click.echo(result.get("report") if dry_run else json.dumps(result))
        return

    from isummarize.verbs import generate_report, run_cycle

    services = _local_services()
    if dry_run:
        report = generate_report(services)
        if report is None:
            raise click.ClickException("Could not list channels; see logs.")
        click.echo(report)
        return

    if not run_cycle(services, recipient):
        raise click.ClickException("Digest was not delivered; see logs.")
    click.echo(f"Digest delivered to {recipient}.")


# ---------------------------------------------------------------------------
# `schedule` command – foreground loop
# ---------------------------------------------------------------------------


@cli.command("schedule", help="Run the digest scheduler in the foreground.")
@click.option(
    "-r",
    "--recipient",
    required=True,
    metavar="USER_ID",
    help="Slack user ID that receives every report.",
)
@click.option(
    "-i",
    "--interval",
    type=int,
    default=None,
    help="Seconds between cycles (defaults to SUMMARY_INTERVAL_SECONDS).",
)
def schedule_command(recipient: str, interval: Optional[int]) -> None:
    from apscheduler.schedulers.blocking import BlockingScheduler

    from isummarize.scheduler import RecipientMailbox, SchedulerLoop
    from isummarize.verbs import run_cycle

    services = _local_services()
    loop = SchedulerLoop(
        partial(run_cycle, services),
        RecipientMailbox(recipient),
        interval_seconds=interval or services.settings.interval_seconds,
        scheduler=BlockingScheduler(timezone="UTC"),
    )
    try:
        loop.start()
    except (KeyboardInterrupt, SystemExit):
        click.echo("Scheduler stopped.")


# ---------------------------------------------------------------------------
# Entry-point shim for `python -m isummarize.cli`
# ---------------------------------------------------------------------------

if __name__ == "__main__":  # pragma: no cover – manual execution shortcut
    cli()  # pylint: disable=no-value-for-parameter
