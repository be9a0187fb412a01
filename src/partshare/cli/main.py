"""
PartShare CLI

Command-line interface for PartShare.
Provides commands for the participant and object catalog, distributions,
allocation settings, statistics and backups.

Usage:
    partshare init --db share.db
    partshare participant add --first-name Alice --last-name Martin
    partshare object add --name Bike --parts '["wheel", "frame"]' \\
        --types '{"City": {"wheel": 2, "frame": 1}}'
    partshare distribution create --name "Spring" --participants 1,2,3 \\
        --selections '[{"type_id": 1, "count": 4}]' --policy share_less
    partshare stats
    partshare db export --output backup.json
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from partshare.allocation.engine import coerce_policy
from partshare.allocation.models import FairnessPolicy
from partshare.app import PartShare
from partshare.catalog.models import ObjectSpec, ParticipantSpec, PartSpec, TypeSpec
from partshare.kernel.errors import PartShareError
from partshare.kernel.logging import configure_logging

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=False, log_level="WARNING")

app = typer.Typer(
    name="partshare",
    help="PartShare - fair distribution of kit parts among participants",
    add_completion=False,
)

# Sub-apps
participant_app = typer.Typer(help="Participant management commands")
object_app = typer.Typer(help="Object, type and part catalog commands")
distribution_app = typer.Typer(help="Distribution commands")
settings_app = typer.Typer(help="Allocation settings commands")
db_app = typer.Typer(help="Database backup commands")

app.add_typer(participant_app, name="participant")
app.add_typer(object_app, name="object")
app.add_typer(distribution_app, name="distribution")
app.add_typer(settings_app, name="settings")
app.add_typer(db_app, name="db")

# Global state
DEFAULT_DB = Path(".partshare.db")

DbOption = Annotated[Optional[Path], typer.Option("--db", help="Database path")]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_app(db_path: Optional[Path] = None) -> PartShare:
    """Get PartShare instance"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'partshare init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return PartShare(str(db))


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn domain errors into a one-line message and exit code 1"""
    try:
        yield
    except PartShareError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def parse_json(value: str, option: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: {option} is not valid JSON: {e}", err=True)
        raise typer.Exit(1) from e


def parse_ids(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        typer.echo(f"Error: expected comma separated ids, got {value!r}", err=True)
        raise typer.Exit(1) from e


# Initialization command


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new PartShare database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    # Creating the façade creates the schema and the settings file
    ps = PartShare(str(db))
    ps.get_settings()
    typer.echo(f"✓ Initialized PartShare database: {db}")


# Participant commands


@participant_app.command("add")
def participant_add(
    first_name: Annotated[str, typer.Option("--first-name", help="First name")],
    last_name: Annotated[str, typer.Option("--last-name", help="Last name")],
    email: Annotated[Optional[str], typer.Option("--email", help="Email")] = None,
    phone: Annotated[Optional[str], typer.Option("--phone", help="Phone")] = None,
    db: DbOption = None,
) -> None:
    """Add a participant"""
    ps = get_app(db)
    with reported_errors():
        participant = ps.add_participant(
            _participant_spec(first_name, last_name, email, phone)
        )
    typer.echo(f"✓ Added participant: {participant.participant_id}")
    typer.echo(f"  Name: {participant.display_name}")


@participant_app.command("edit")
def participant_edit(
    participant_id: Annotated[int, typer.Option("--id", help="Participant ID")],
    first_name: Annotated[str, typer.Option("--first-name", help="First name")],
    last_name: Annotated[str, typer.Option("--last-name", help="Last name")],
    email: Annotated[Optional[str], typer.Option("--email", help="Email")] = None,
    phone: Annotated[Optional[str], typer.Option("--phone", help="Phone")] = None,
    db: DbOption = None,
) -> None:
    """Replace a participant's details"""
    ps = get_app(db)
    with reported_errors():
        participant = ps.edit_participant(
            participant_id, _participant_spec(first_name, last_name, email, phone)
        )
    typer.echo(f"✓ Updated participant: {participant.participant_id}")
    typer.echo(f"  Name: {participant.display_name}")


@participant_app.command("list")
def participant_list(
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List all participants"""
    ps = get_app(db)
    participants = ps.list_participants()

    if json_output:
        typer.echo(
            json.dumps([p.model_dump(mode="json") for p in participants], indent=2)
        )
        return
    if not participants:
        typer.echo("No participants")
        return

    typer.echo(f"Participants ({len(participants)}):")
    for p in participants:
        contact = ", ".join(c for c in (p.email, p.phone) if c)
        suffix = f" ({contact})" if contact else ""
        typer.echo(f"  {p.participant_id}: {p.display_name}{suffix}")


@participant_app.command("remove")
def participant_remove(
    participant_id: Annotated[int, typer.Option("--id", help="Participant ID")],
    db: DbOption = None,
) -> None:
    """Remove a participant and their assignment history"""
    ps = get_app(db)
    with reported_errors():
        ps.delete_participant(participant_id)
    typer.echo(f"✓ Removed participant: {participant_id}")


def _participant_spec(
    first_name: str, last_name: str, email: Optional[str], phone: Optional[str]
) -> ParticipantSpec:
    try:
        return ParticipantSpec(
            first_name=first_name, last_name=last_name, email=email, phone=phone
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


# Object commands


@object_app.command("add")
def object_add(
    name: Annotated[str, typer.Option("--name", help="Object name")],
    parts: Annotated[
        str,
        typer.Option("--parts", help='Part names (JSON list, e.g. ["wheel", "frame"])'),
    ],
    types: Annotated[
        str,
        typer.Option(
            "--types",
            help='Types (JSON, e.g. {"City": {"wheel": 2, "frame": 1}})',
        ),
    ] = "{}",
    db: DbOption = None,
) -> None:
    """Add an object with its part kinds and kit types"""
    ps = get_app(db)
    spec = _object_spec(name, parse_json(parts, "--parts"), parse_json(types, "--types"))
    with reported_errors():
        obj = ps.add_object(spec)

    typer.echo(f"✓ Added object: {obj.object_id}")
    typer.echo(f"  Name: {obj.name}")
    for kit in obj.types:
        members = ", ".join(f"{m.name} x{m.quantity}" for m in kit.members)
        typer.echo(f"  Type {kit.type_id}: {kit.name} [{members}]")


@object_app.command("list")
def object_list(
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List all objects with their types"""
    ps = get_app(db)
    objects = ps.list_objects()

    if json_output:
        typer.echo(json.dumps([o.model_dump(mode="json") for o in objects], indent=2))
        return
    if not objects:
        typer.echo("No objects")
        return

    typer.echo(f"Objects ({len(objects)}):")
    for obj in objects:
        typer.echo(f"  {obj.object_id}: {obj.name}")
        typer.echo(f"    Parts: {', '.join(p.name for p in obj.parts) or '-'}")
        for kit in obj.types:
            members = ", ".join(f"{m.name} x{m.quantity}" for m in kit.members)
            typer.echo(f"    Type {kit.type_id}: {kit.name} [{members}]")


@object_app.command("remove")
def object_remove(
    object_id: Annotated[int, typer.Option("--id", help="Object ID")],
    db: DbOption = None,
) -> None:
    """Remove an object with its parts and types"""
    ps = get_app(db)
    with reported_errors():
        ps.delete_object(object_id)
    typer.echo(f"✓ Removed object: {object_id}")


def _object_spec(name: str, parts: object, types: object) -> ObjectSpec:
    if not isinstance(parts, list) or not isinstance(types, dict):
        typer.echo("Error: --parts must be a JSON list and --types a JSON object", err=True)
        raise typer.Exit(1)
    try:
        return ObjectSpec(
            name=name,
            parts=[PartSpec(name=str(p)) for p in parts],
            types=[TypeSpec(name=t, quantities=q) for t, q in types.items()],
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


# Distribution commands


@distribution_app.command("create")
def distribution_create(
    name: Annotated[str, typer.Option("--name", help="Distribution name")],
    participants: Annotated[
        str,
        typer.Option("--participants", help="Participant IDs (comma separated)"),
    ],
    selections: Annotated[
        str,
        typer.Option(
            "--selections",
            help='Requested kits (JSON, e.g. [{"type_id": 1, "count": 4}])',
        ),
    ],
    policy: Annotated[
        Optional[FairnessPolicy],
        typer.Option("--policy", help="Fairness policy (defaults to settings)"),
    ] = None,
    count: Annotated[
        Optional[int],
        typer.Option(
            "--count",
            help="Share rounds for share_* policies (0 = max, defaults to settings)",
        ),
    ] = None,
    seed: Annotated[
        Optional[str],
        typer.Option("--seed", help="Seed for reproducible random policies"),
    ] = None,
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Create a distribution and allocate it"""
    ps = get_app(db)
    selection_list = parse_json(selections, "--selections")
    participant_ids = parse_ids(participants)

    with reported_errors():
        allocation_policy = None
        if policy is not None or count is not None:
            settings = ps.get_settings()
            allocation_policy = coerce_policy(
                {
                    "type": policy.value if policy is not None else settings.algorithm_type,
                    "count": count if count is not None else settings.algorithm_count,
                }
            )
        distribution = ps.create_distribution(
            name=name,
            participant_ids=participant_ids,
            selections=selection_list,
            policy=allocation_policy,
            seed=seed,
        )

    if json_output:
        typer.echo(json.dumps(distribution.model_dump(mode="json"), indent=2))
        return

    typer.echo(f"✓ Created distribution: {distribution.distribution_id}")
    typer.echo(f"  Name: {distribution.name}")
    typer.echo(f"  Units: {distribution.total_units}")
    for pid in distribution.participant_ids:
        typer.echo(f"  Participant {pid}: {distribution.units_for(pid)} units")


@distribution_app.command("list")
def distribution_list(
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """List distributions, most recent first"""
    ps = get_app(db)
    distributions = ps.list_distributions()

    if json_output:
        typer.echo(
            json.dumps([d.model_dump(mode="json") for d in distributions], indent=2)
        )
        return
    if not distributions:
        typer.echo("No distributions")
        return

    typer.echo(f"Distributions ({len(distributions)}):")
    for d in distributions:
        typer.echo(
            f"  {d.distribution_id}: {d.name} "
            f"({d.created_at:%Y-%m-%d}, {len(d.participant_ids)} participants, "
            f"{d.total_units} units)"
        )


@distribution_app.command("show")
def distribution_show(
    distribution_id: Annotated[int, typer.Option("--id", help="Distribution ID")],
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show a distribution with its assignments"""
    ps = get_app(db)
    with reported_errors():
        distribution = ps.get_distribution(distribution_id)

    if json_output:
        typer.echo(json.dumps(distribution.model_dump(mode="json"), indent=2))
        return

    typer.echo(f"Distribution {distribution.distribution_id}: {distribution.name}")
    typer.echo(f"  Created: {distribution.created_at.isoformat()}")
    typer.echo(f"  Units: {distribution.total_units}")
    typer.echo("  Assignments:")
    for a in distribution.assignments:
        typer.echo(
            f"    participant {a.participant_id} ← part {a.part_kind_id} "
            f"(type {a.type_id}) x{a.quantity}"
        )


@distribution_app.command("cancel")
def distribution_cancel(
    distribution_id: Annotated[int, typer.Option("--id", help="Distribution ID")],
    db: DbOption = None,
) -> None:
    """Cancel (delete) a distribution and its assignments"""
    ps = get_app(db)
    with reported_errors():
        ps.cancel_distribution(distribution_id)
    typer.echo(f"✓ Cancelled distribution: {distribution_id}")


# Settings commands


@settings_app.command("show")
def settings_show(
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show allocation settings"""
    ps = get_app(db)
    settings = ps.get_settings()

    if json_output:
        typer.echo(json.dumps(settings.model_dump(), indent=2))
        return
    typer.echo("Allocation settings:")
    typer.echo(f"  Algorithm: {settings.algorithm_type}")
    typer.echo(f"  Share rounds: {settings.algorithm_count or 'max'}")
    typer.echo(f"  Timeout: {settings.allocation_timeout_seconds}s")


@settings_app.command("set")
def settings_set(
    algorithm: Annotated[
        Optional[FairnessPolicy],
        typer.Option("--algorithm", help="Default fairness policy"),
    ] = None,
    count: Annotated[
        Optional[int],
        typer.Option("--count", help="Default share rounds (0 = max)"),
    ] = None,
    timeout: Annotated[
        Optional[int],
        typer.Option("--timeout", help="Allocation timeout in seconds"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Change allocation settings"""
    ps = get_app(db)
    changes: dict[str, object] = {}
    if algorithm is not None:
        changes["algorithm_type"] = algorithm.value
    if count is not None:
        changes["algorithm_count"] = count
    if timeout is not None:
        changes["allocation_timeout_seconds"] = timeout
    if not changes:
        typer.echo("Error: nothing to change", err=True)
        raise typer.Exit(1)

    with reported_errors():
        settings = ps.update_settings(**changes)
    typer.echo("✓ Settings updated")
    typer.echo(f"  Algorithm: {settings.algorithm_type}")
    typer.echo(f"  Share rounds: {settings.algorithm_count or 'max'}")


# Statistics


@app.command()
def stats(
    json_output: JsonOption = False,
    db: DbOption = None,
) -> None:
    """Show distribution statistics"""
    ps = get_app(db)
    statistics = ps.statistics()

    if json_output:
        typer.echo(json.dumps(statistics.model_dump(mode="json"), indent=2))
        return

    typer.echo("Distribution statistics:")
    typer.echo(f"  Distributions: {statistics.total_distributions}")
    typer.echo(f"  Units distributed: {statistics.total_units}")
    typer.echo(f"  Participants served: {statistics.unique_participants}")
    typer.echo(f"  Mean units: {statistics.mean_units:.2f}")
    typer.echo(f"  Std deviation: {statistics.std_dev_units:.2f}")
    typer.echo(f"  Equity index: {statistics.equity_index}%")
    typer.echo(f"  Gini coefficient: {statistics.gini_coefficient:.3f}")
    if statistics.participants:
        typer.echo("  Per participant:")
        for p in statistics.participants:
            typer.echo(
                f"    {p.display_name}: {p.total_units} units "
                f"({p.share_percent}%, invited to {p.participation_rate}%)"
            )
    if statistics.objects:
        typer.echo("  Per object:")
        for o in statistics.objects:
            typer.echo(f"    {o.name}: {o.total_units} units ({o.share_percent}%)")


# Backup commands


@db_app.command("export")
def db_export(
    output: Annotated[Path, typer.Option("--output", help="Backup file to write")],
    db: DbOption = None,
) -> None:
    """Export the whole database to a JSON file"""
    ps = get_app(db)
    with reported_errors():
        dump = ps.export_dump()
    output.write_text(json.dumps(dump, indent=2, default=str), encoding="utf-8")
    rows = sum(len(rows) for rows in dump["data"].values())
    typer.echo(f"✓ Exported {rows} rows to {output}")


@db_app.command("import")
def db_import(
    input_file: Annotated[Path, typer.Option("--input", help="Backup file to read")],
    db: DbOption = None,
) -> None:
    """Replace the database content with a JSON backup"""
    ps = get_app(db)
    if not input_file.exists():
        typer.echo(f"Error: Backup file not found: {input_file}", err=True)
        raise typer.Exit(1)

    dump = parse_json(input_file.read_text(encoding="utf-8"), "--input")
    with reported_errors():
        inserted = ps.import_dump(dump)
    typer.echo(f"✓ Imported {sum(inserted.values())} rows from {input_file}")


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
