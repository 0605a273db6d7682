"""SIGESALUD CLI - roster generation, offline population and operation calls."""

import json
import logging
import sys
from pathlib import Path

import typer
from dotenv import load_dotenv

from sigesalud.config import Settings
from sigesalud.exceptions import RosterInputError, SigesaludError

# Load environment variables from .env
load_dotenv()

app = typer.Typer(help="Health-sector reporting core: synthetic rosters, storage and dashboard operations")


def _settings(config: str | None, data_root: str | None = None) -> Settings:
    settings = Settings.from_yaml(config) if config else Settings.from_env()
    if data_root:
        settings = Settings.model_validate(
            {**settings.model_dump(exclude={"hr_root"}), "data_root": Path(data_root)}
        )
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    return settings


@app.command()
def roster(
    seed: int | None = typer.Option(None, "--seed", "-s", help="Roster RNG seed"),
    data_root: str | None = typer.Option(None, "--data-root", help="Directory with the static JSON files"),
    out: str | None = typer.Option(None, "--out", "-o", help="Output directory (defaults to the HR root)"),
    config: str | None = typer.Option(None, "--config", "-c", help="YAML settings file"),
) -> None:
    """Generate the synthetic HR roster from the staffing quotas.

    Reads ``staff_assignments.json`` and ``facilities.full.json`` from the data
    root and writes ``hr.workers.json``, ``hr.assignments.json``,
    ``hr.history.json`` and ``hr.credentials.json``.

    Example:

      sigesalud roster --data-root data --seed 20250108
    """
    try:
        from sigesalud.generators import generate_roster
        from sigesalud.storage.files import load_collection
        from sigesalud.writers import write_roster

        settings = _settings(config, data_root)
        quotas = [
            {k: v for k, v in row.items() if v is not None}
            for row in load_collection("staff_assignments", settings.data_root)
        ]
        if not quotas:
            raise RosterInputError(f"No staffing quotas found under {settings.data_root}")
        facility_ids = [
            row["facility_id"]
            for row in load_collection("facilities", settings.data_root)
            if row.get("facility_id")
        ]

        result = generate_roster(quotas, facility_ids, seed if seed is not None else settings.roster_seed)
        out_dir = Path(out) if out else settings.hr_root
        paths = write_roster(result, out_dir)
        typer.echo(f"✓ Roster: {len(result.workers)} workers → {out_dir}/ ({len(paths)} files)")
    except SigesaludError as exc:
        typer.echo(f"❌ Error: {exc}", err=True)
        sys.exit(1)
    except Exception as exc:
        typer.echo(f"❌ Unexpected error: {exc}", err=True)
        sys.exit(1)


@app.command()
def seed(
    database_url: str | None = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
    data_root: str | None = typer.Option(None, "--data-root", help="Directory with the static JSON files"),
    replace: bool = typer.Option(False, "--replace", help="Reload tables that already hold rows"),
    config: str | None = typer.Option(None, "--config", "-c", help="YAML settings file"),
) -> None:
    """Create the relational schema and load every collection from the static files."""
    try:
        from sigesalud.storage.seed import populate

        settings = _settings(config, data_root)
        url = database_url or settings.database_url
        counts = populate(url, settings.data_root, settings.hr_root, replace=replace)
        for table, count in counts.items():
            typer.echo(f"   {table}: {count}")
        typer.echo(f"✓ Loaded {sum(counts.values())} rows into {url}")
    except SigesaludError as exc:
        typer.echo(f"❌ Error: {exc}", err=True)
        sys.exit(1)
    except Exception as exc:
        typer.echo(f"❌ Unexpected error: {exc}", err=True)
        sys.exit(1)


@app.command()
def call(
    name: str = typer.Argument(..., help="Operation name, e.g. dashboard.summary"),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
    backend: str | None = typer.Option(None, "--backend", "-b", help="memory or relational"),
    config: str | None = typer.Option(None, "--config", "-c", help="YAML settings file"),
) -> None:
    """Run one named operation and print its result as JSON.

    Example:

      sigesalud call epi.trend --payload '{"diseaseId": "MALARIA", "weeks": 8}'
    """
    try:
        from sigesalud.api import ReportingApi
        from sigesalud.storage import get_backend

        settings = _settings(config)
        if backend:
            settings = Settings.model_validate({**settings.model_dump(), "backend": backend})
        body = json.loads(payload)
        if not isinstance(body, dict):
            raise ValueError("--payload must be a JSON object")

        api = ReportingApi(backend=get_backend(settings), settings=settings)
        result = api.call(name, body)
        typer.echo(json.dumps(result, indent=2, ensure_ascii=False, default=str))
    except SigesaludError as exc:
        typer.echo(f"❌ Error: {exc}", err=True)
        sys.exit(1)
    except Exception as exc:
        typer.echo(f"❌ Unexpected error: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    app()
