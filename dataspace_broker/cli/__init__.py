"""
Command Line Interface for the Dataspace Broker.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..db.audit_service import AuditService
from ..db.base import get_session_local, init_database
from ..db.services import ArtifactService
from ..exceptions import BrokerError
from ..policy.verifier import get_verifier
from ..schemas.retrieval import RetrievalInformation
from ..services.artifacts import ArtifactDataBroker
from ..services.http import HttpArtifactRetriever
from ..worker.removal import ScheduledDataRemoval

app = typer.Typer(help="Dataspace Broker - usage-controlled artifact data access")
console = Console()


@app.command("init-db")
def init_db():
    """Create all database tables."""
    init_database()
    console.print("✅ Database initialized")


@app.command()
def artifacts(limit: int = typer.Option(50, help="Maximum number of artifacts to list")):
    """List artifacts with their access bookkeeping."""
    db = get_session_local()()
    try:
        rows = ArtifactService(db).get_artifacts(limit=limit)

        table = Table(title="Artifacts", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Kind")
        table.add_column("Accessed", justify="right")
        table.add_column("Bytes", justify="right")
        table.add_column("Checksum", justify="right")
        table.add_column("Agreements", justify="right")

        for artifact in rows:
            table.add_row(
                artifact.id,
                artifact.title,
                artifact.data.kind if artifact.data else "-",
                str(artifact.num_accessed),
                str(artifact.byte_size),
                f"{artifact.check_sum:08x}",
                str(len(artifact.agreements)),
            )

        console.print(table)
    finally:
        db.close()


@app.command()
def fetch(
    artifact_id: str = typer.Argument(..., help="Local artifact id"),
    agreement: Optional[str] = typer.Option(
        None, help="Remote id of the agreement to use; tries all agreements if omitted"
    ),
    force: Optional[bool] = typer.Option(
        None, "--force/--no-force", help="Always or never refetch from the provider"
    ),
    out: Optional[Path] = typer.Option(None, help="Write data to this file instead of stdout"),
):
    """Access an artifact's data under its usage policies."""
    settings = get_settings()
    db = get_session_local()()
    retriever = HttpArtifactRetriever(timeout=settings.http_timeout_seconds)
    try:
        broker = ArtifactDataBroker(db, settings=settings)
        verifier = get_verifier(settings, log_sink=broker.record_usage)

        information = RetrievalInformation(transfer_contract=agreement, force_download=force)
        stream = broker.get_data_by_agreement(verifier, retriever, artifact_id, information)

        payload = stream.read()
        if out is not None:
            out.write_bytes(payload)
            console.print(f"✅ Wrote {len(payload)} bytes to {out}")
        else:
            sys.stdout.buffer.write(payload)
    except BrokerError as e:
        console.print(f"❌ {e.code}: {e.message}", style="red")
        raise typer.Exit(code=1)
    finally:
        retriever.close()
        db.close()


@app.command()
def scan():
    """Run one scheduled data removal pass."""
    rprint(Panel.fit("🧹 Scanning agreements for due deletion duties", style="bold blue"))
    result = ScheduledDataRemoval().run_once()
    if result is None:
        console.print("⏭️  Scan skipped or failed, see logs")
        return

    console.print(f"Agreements scanned: {result.agreements_scanned}")
    console.print(f"Duties due: {result.duties_due}")
    console.print(f"Artifacts erased: {len(result.erased)}")
    for artifact_id in result.erased:
        console.print(f"  🗑️  {artifact_id}")
    if result.failures:
        console.print(f"⚠️  Failures: {result.failures}", style="yellow")


@app.command()
def audit(
    entity_id: str = typer.Argument(..., help="Artifact id"),
    limit: int = typer.Option(20, help="Maximum number of entries"),
):
    """Show the audit trail of an artifact."""
    db = get_session_local()()
    try:
        entries = AuditService(db).query_by_entity(entity_id, limit=limit)

        table = Table(title=f"Audit trail for {entity_id}", show_header=True)
        table.add_column("Time", style="cyan")
        table.add_column("Action")
        table.add_column("Actor")
        table.add_column("Agreement")
        table.add_column("Note")

        for entry in entries:
            table.add_row(
                entry.ts.isoformat() if entry.ts else "-",
                entry.action,
                f"{entry.actor_kind}:{entry.actor_id}",
                entry.agreement_id or "-",
                entry.note or "",
            )

        console.print(table)
    finally:
        db.close()


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
