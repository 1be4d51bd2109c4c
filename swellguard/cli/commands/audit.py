"""
Audit trail commands. They read the database audit sink directly.
"""
import asyncio
from typing import List, Optional

import typer
from rich.table import Table

from ...auth.models import AuditFilter, Severity
from ..utils import SEVERITY_STYLES, console, print_error, print_success, print_warning

app = typer.Typer(help="Inspect and verify the audit trail")


def _database_url(database_url: Optional[str]) -> str:
    from ...core.config import get_settings

    settings = get_settings()
    if database_url is None and settings.AUDIT_SINK != "database":
        print_warning("SWELLGUARD_AUDIT_SINK is not 'database'; reading SWELLGUARD_DATABASE_URL anyway")
    return database_url or settings.DATABASE_URL


async def _load_events(
    database_url: str,
    newest: Optional[int] = None,
    audit_filter: Optional[AuditFilter] = None
):
    from ...auth.audit import SQLAlchemyAuditSink
    from ...db import Database

    database = Database(database_url)
    try:
        await database.create_all()
        sink = SQLAlchemyAuditSink(database)
        if newest is not None:
            return await sink.query(audit_filter or AuditFilter(), newest, 0)
        return await sink.all_events()
    finally:
        await database.close()


@app.command("list")
def list_events(
    limit: int = typer.Option(50, min=1, max=500, help="Number of newest events to show"),
    severity: Optional[Severity] = typer.Option(None, case_sensitive=False, help="Only show this severity"),
    subject: Optional[str] = typer.Option(None, help="Only show this subject"),
    database_url: Optional[str] = typer.Option(None, help="Overrides SWELLGUARD_DATABASE_URL"),
) -> None:
    """Show the newest security events."""
    audit_filter = AuditFilter(subject_id=subject, severity=severity)
    events = asyncio.run(_load_events(_database_url(database_url), newest=limit, audit_filter=audit_filter))

    if not events:
        print_warning("No security events found")
        return

    table = Table(title="Security events")
    table.add_column("#", justify="right")
    table.add_column("Time")
    table.add_column("Severity")
    table.add_column("Action")
    table.add_column("Resource")
    table.add_column("Subject")
    table.add_column("Source")
    for event in events:
        style = SEVERITY_STYLES.get(event.severity.value, "")
        table.add_row(
            str(event.sequence),
            event.timestamp.isoformat(timespec="seconds"),
            f"[{style}]{event.severity.value}[/{style}]" if style else event.severity.value,
            event.action,
            event.resource,
            event.subject_id or "-",
            event.source_address or "-",
        )
    console.print(table)


@app.command("verify")
def verify_events(
    database_url: Optional[str] = typer.Option(None, help="Overrides SWELLGUARD_DATABASE_URL"),
) -> None:
    """Check the hash chain of every stored event."""
    from ...auth.audit import verify_chain

    events: List = asyncio.run(_load_events(_database_url(database_url)))
    result = verify_chain(events)
    if result.valid:
        print_success(f"Audit chain intact ({result.checked} events)")
        return

    print_error(f"Audit chain broken at sequence {result.broken_at}: {result.reason}")
    raise typer.Exit(code=1)
