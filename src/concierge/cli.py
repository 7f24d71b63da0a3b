"""
Concierge CLI

Command-line interface for the guest reply engine.

Commands:
    concierge process "message" --sender guest@example.com   Process one message
    concierge approvals                                      List pending approvals
    concierge approve <approval_id>                          Approve a pending item
    concierge reject <approval_id>                           Reject a pending item
    concierge config-check                                   Validate the YAML config
    concierge status                                         Show version and environment

Environment:
    CONCIERGE_CONFIG_DIR   config directory (default ./config)
    DATABASE_URL           SQLite path or postgresql:// URL (default concierge.db)
    CONCIERGE_PROVIDER     openai | claude
"""

from __future__ import annotations

import asyncio
import importlib
import json
import os
import sys

import click

from concierge import __version__
from concierge.config.loader import load_app_config
from concierge.core.models import ApprovalType, InboundMessage
from concierge.exceptions import ApprovalStateConflictError, ConfigurationError
from concierge.logging import configure_logging
from concierge.service import ReceptionistService
from concierge.storage.repository import Repository
from concierge.workflow.approvals import ApprovalWorkflow


def _build_service() -> ReceptionistService:
    return ReceptionistService.from_env()


def _workflow() -> ApprovalWorkflow:
    return ApprovalWorkflow(Repository(os.environ.get("DATABASE_URL", "concierge.db")))


def _print_header(title: str) -> None:
    click.echo(f"\n  {'=' * 60}")
    click.echo(f"  {title}")
    click.echo(f"  {'=' * 60}\n")


@click.group()
@click.version_option(version=__version__, prog_name="concierge")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
def cli(verbose: bool, json_logs: bool) -> None:
    """Concierge: moderated guest reply engine for holiday homes."""
    configure_logging(level="DEBUG" if verbose else "WARNING", json_output=json_logs)


@cli.command()
@click.argument("body")
@click.option("--sender", required=True, help="Guest address, e.g. 'Ann <ann@example.com>'")
@click.option("--subject", default="", help="Message subject")
@click.option("--thread-id", default=None, help="Conversation thread id")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def process(body: str, sender: str, subject: str, thread_id: str | None, json_output: bool) -> None:
    """Process one inbound guest message."""
    service = _build_service()
    message = InboundMessage(sender=sender, subject=subject, body=body, thread_id=thread_id)
    try:
        response = asyncio.run(service.handle_inbound_message(message))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    if json_output:
        click.echo(json.dumps(response.model_dump(mode="json"), indent=2))
        return

    _print_header("Reply")
    click.echo(f"  {response.message}\n")
    click.echo(f"  Confidence:        {response.confidence:.2f}")
    click.echo(f"  Requires approval: {'yes' if response.requires_approval else 'no'}")
    if response.approval_id:
        click.echo(f"  Approval:          {response.approval_id}")
    if response.risk_flags:
        click.echo(f"  Risk flags:        {', '.join(f.value for f in response.risk_flags)}")
    if response.tool_calls:
        tools = ", ".join(f"{t.name}({'ok' if t.success else 'failed'})" for t in response.tool_calls)
        click.echo(f"  Tools:             {tools}")
    click.echo(f"  Reasoning:         {response.reasoning}")


@cli.command()
@click.option(
    "--type", "approval_type",
    type=click.Choice([t.value for t in ApprovalType]),
    default=None,
    help="Only approvals of this type (any status)",
)
@click.option("--overdue", type=float, default=None, help="Only pending approvals older than N hours")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def approvals(approval_type: str | None, overdue: float | None, json_output: bool) -> None:
    """List pending approvals, oldest first."""
    workflow = _workflow()
    if approval_type:
        items = asyncio.run(workflow.list_by_type(ApprovalType(approval_type)))
    elif overdue is not None:
        items = asyncio.run(workflow.list_overdue(overdue))
    else:
        items = asyncio.run(workflow.list_pending())

    if json_output:
        click.echo(json.dumps([a.model_dump(mode="json") for a in items], indent=2))
        return

    _print_header("Approvals")
    if not items:
        click.echo("  No approvals found.")
        return
    for a in items:
        score = f"{a.confidence_score:.2f}" if a.confidence_score is not None else "  - "
        draft = str(a.payload.get("draft_reply", ""))[:50]
        click.echo(
            f"  {a.approval_id}  [{a.status.value:8s}] {a.type.value:12s} {score}  {draft}"
        )


@cli.command()
@click.argument("approval_id")
@click.option("--reviewer", default=None, help="Name recorded on the approved draft")
def approve(approval_id: str, reviewer: str | None) -> None:
    """Approve a pending approval."""
    try:
        approval = asyncio.run(_workflow().approve(approval_id, reviewer=reviewer))
    except ApprovalStateConflictError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"  Approved {approval.approval_id}")


@cli.command()
@click.argument("approval_id")
def reject(approval_id: str) -> None:
    """Reject a pending approval."""
    try:
        approval = asyncio.run(_workflow().reject(approval_id))
    except ApprovalStateConflictError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"  Rejected {approval.approval_id}")


@cli.command("config-check")
@click.option("--config-dir", default=None, help="Config directory (default: CONCIERGE_CONFIG_DIR or ./config)")
def config_check(config_dir: str | None) -> None:
    """Load and validate policies, FAQs and prompts."""
    try:
        config = load_app_config(config_dir)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    thresholds = config.policies.confidence_thresholds
    settings = config.policies.approval_settings
    _print_header("Configuration OK")
    click.echo(f"  Escalation keywords: {len(config.policies.escalation.emergency_keywords)}")
    click.echo(f"  Red lines:           {len(config.policies.red_lines)}")
    click.echo(
        f"  Thresholds:          auto_reply={thresholds.auto_reply} "
        f"approval_required={thresholds.approval_required} "
        f"escalate_immediately={thresholds.escalate_immediately}"
    )
    click.echo(f"  Draft mode:          {'on' if settings.draft_mode_default else 'off'}")
    click.echo(f"  FAQ topics:          {len(config.faqs.defaults)}")
    click.echo(f"  Property overrides:  {len(config.faqs.per_property_overrides)}")


@cli.command()
def status() -> None:
    """Show version, dependencies and environment."""
    _print_header("Concierge Status")
    click.echo(f"  Version: {__version__}")
    click.echo(f"  Python: {sys.version.split()[0]}")

    deps = {
        "pydantic": "Models",
        "yaml": "Config loader",
        "openai": "OpenAI provider",
        "anthropic": "Claude provider",
        "psycopg": "PostgreSQL storage",
    }
    click.echo("\n  Dependencies:")
    for pkg, label in deps.items():
        try:
            mod = importlib.import_module(pkg)
            version = getattr(mod, "__version__", "installed")
            click.echo(f"    {label:24s} {pkg:12s} {version}")
        except ImportError:
            click.echo(f"    {label:24s} {pkg:12s} NOT INSTALLED")

    click.echo("\n  Environment:")
    for var in ["CONCIERGE_CONFIG_DIR", "CONCIERGE_PROVIDER", "DATABASE_URL", "OPENAI_API_KEY", "ANTHROPIC_API_KEY"]:
        value = os.environ.get(var)
        if value and var.endswith("_KEY"):
            masked = value[:4] + "..." + value[-4:] if len(value) > 10 else "***"
            click.echo(f"    {var:24s} {masked}")
        else:
            click.echo(f"    {var:24s} {value or 'NOT SET'}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
