"""Operator CLI for triggering engine units from a scheduler."""

import json
import logging
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click
import structlog

from bookrank import __version__
from bookrank.config import ConfigLoader, ConfigValidationError, EngineConfig
from bookrank.config.constants import COMPONENT_CLI
from bookrank.data_model import RankingType, ReadStatus
from bookrank.observability import bind_unit_context, configure_logging
from bookrank.rankings import RankingSnapshotManager
from bookrank.recommendations import GenerateOptions, RecommendationAssembler
from bookrank.related import RelatedItemsBuilder
from bookrank.settings import get_settings
from bookrank.signals import SqliteSignalReader
from bookrank.store import EngineStore


logger = structlog.get_logger()


@dataclass
class EngineOptions:
    """Paths and logging flags shared by engine commands."""

    state_path: Path
    signals_path: Path
    config_path: Path | None
    json_logs: bool
    verbose: bool


@dataclass
class EngineContext:
    """Open engine collaborators for one command."""

    run_id: str
    config: EngineConfig
    store: EngineStore
    reader: SqliteSignalReader


def _resolve_options(
    state_path: Path | None,
    signals_path: Path | None,
    config_path: Path | None,
    json_logs: bool,
    verbose: bool,
) -> EngineOptions:
    """Fill unset options from BOOKRANK_* settings."""
    settings = get_settings()
    return EngineOptions(
        state_path=state_path or settings.state_path,
        signals_path=signals_path or settings.signals_path,
        config_path=config_path or settings.config_path,
        json_logs=json_logs,
        verbose=verbose,
    )


@contextmanager
def _engine(options: EngineOptions, command: str) -> Generator[EngineContext]:
    """Configure logging, load config and open both databases.

    Exits with status 1 when the configuration is invalid.
    """
    run_id = str(uuid.uuid4())
    settings = get_settings()
    level = logging.DEBUG if options.verbose else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    configure_logging(level=level, json_format=options.json_logs)
    bind_unit_context(run_id)

    log = logger.bind(run_id=run_id, component=COMPONENT_CLI, command=command)
    log.info(
        "command_started",
        state_path=str(options.state_path),
        signals_path=str(options.signals_path),
        config_path=str(options.config_path) if options.config_path else None,
    )

    loader = ConfigLoader(run_id=run_id)
    try:
        config = loader.load(options.config_path)
    except ConfigValidationError:
        click.echo("Configuration validation failed:", err=True)
        for error in loader.validation_errors:
            click.echo(f"  - {error['loc']}: {error['msg']}", err=True)
        sys.exit(1)

    with (
        EngineStore(db_path=options.state_path, run_id=run_id) as store,
        SqliteSignalReader(db_path=options.signals_path) as reader,
    ):
        yield EngineContext(run_id=run_id, config=config, store=store, reader=reader)

    log.info("command_complete")


def engine_options(func):  # type: ignore[no-untyped-def]
    """Attach the options shared by engine commands."""
    decorators = [
        click.option(
            "--state",
            "state_path",
            type=click.Path(path_type=Path),
            default=None,
            help="Path to the engine SQLite database (default: BOOKRANK_STATE_PATH).",
        ),
        click.option(
            "--signals",
            "signals_path",
            type=click.Path(exists=True, path_type=Path),
            default=None,
            help="Path to the signal SQLite database (default: BOOKRANK_SIGNALS_PATH).",
        ),
        click.option(
            "--config",
            "config_path",
            type=click.Path(exists=True, path_type=Path),
            default=None,
            help="Path to engine.yaml (built-in defaults when omitted).",
        ),
        click.option(
            "--json-logs/--no-json-logs",
            default=lambda: get_settings().json_logs,
            help="Use JSON format for logs (default: BOOKRANK_JSON_LOGS).",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Book ranking and recommendation engine CLI."""


@cli.command("compute-rankings")
@click.option(
    "--type",
    "ranking_types",
    multiple=True,
    type=click.Choice([t.value for t in RankingType]),
    help="Ranking type to compute (repeatable; all configured types when omitted).",
)
@click.option(
    "--skip-trending-refresh",
    is_flag=True,
    help="Do not refresh catalog trending scores after the batch.",
)
@engine_options
def compute_rankings(  # noqa: PLR0913
    ranking_types: tuple[str, ...],
    skip_trending_refresh: bool,
    state_path: Path | None,
    signals_path: Path | None,
    config_path: Path | None,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Compute ranking snapshots and swap them in as active."""
    options = _resolve_options(state_path, signals_path, config_path, json_logs, verbose)
    with _engine(options, "compute-rankings") as engine:
        manager = RankingSnapshotManager(engine.reader, engine.store, engine.config)
        result = manager.compute_rankings_batch(
            [RankingType(t) for t in ranking_types] or None,
            refresh_trending=not skip_trending_refresh,
        )

    for snapshot in result.results:
        click.echo(
            f"{snapshot.ranking_type.value}: snapshot {snapshot.snapshot_id} "
            f"({snapshot.item_count} items, {snapshot.status.value})"
        )
    for failure in result.failures:
        click.echo(
            f"{failure.unit}: FAILED [{failure.error_class.value}] {failure.message}",
            err=True,
        )
    click.echo(f"Trending scores refreshed: {result.trending_scores_refreshed}")
    if not result.success:
        sys.exit(1)


@cli.command("compute-related")
@click.option(
    "--item-id",
    "item_ids",
    multiple=True,
    type=int,
    help="Item to compute (repeatable; whole catalog when omitted).",
)
@engine_options
def compute_related(  # noqa: PLR0913
    item_ids: tuple[int, ...],
    state_path: Path | None,
    signals_path: Path | None,
    config_path: Path | None,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Compute relatedness edges for items or the whole catalog."""
    options = _resolve_options(state_path, signals_path, config_path, json_logs, verbose)
    with _engine(options, "compute-related") as engine:
        builder = RelatedItemsBuilder(engine.reader, engine.store, engine.config)
        item_type = engine.config.execution.item_type
        if item_ids:
            for item_id in item_ids:
                edges = builder.compute_related_items(item_type, item_id)
                click.echo(f"{item_type.value}:{item_id}: {len(edges)} edges")
            return
        counts = builder.compute_all_related_items(item_type)

    click.echo(f"Processed: {counts['processed']}  Failed: {counts['failed']}")
    if counts["failed"]:
        sys.exit(1)


@cli.command()
@click.option(
    "--user-id",
    "user_ids",
    multiple=True,
    type=int,
    required=True,
    help="User to generate recommendations for (repeatable).",
)
@click.option("--limit", type=click.IntRange(1, 500), default=None, help="Rows per user.")
@click.option(
    "--include-read",
    is_flag=True,
    help="Keep items the user has already read.",
)
@engine_options
def recommend(  # noqa: PLR0913
    user_ids: tuple[int, ...],
    limit: int | None,
    include_read: bool,
    state_path: Path | None,
    signals_path: Path | None,
    config_path: Path | None,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Generate and persist recommendations for users."""
    options = _resolve_options(state_path, signals_path, config_path, json_logs, verbose)
    with _engine(options, "recommend") as engine:
        assembler = RecommendationAssembler(
            engine.reader, engine.store, engine.store, engine.config
        )
        defaults = assembler.default_options()
        generate = GenerateOptions(
            limit=limit or defaults.limit,
            exclude_read=not include_read,
            min_rating=defaults.min_rating,
        )
        result = assembler.generate_batch(list(user_ids), generate)

    for user_id, count in result.generated.items():
        click.echo(f"user:{user_id}: {count} recommendations")
    for failure in result.failures:
        click.echo(
            f"{failure.unit}: FAILED [{failure.error_class.value}] {failure.message}",
            err=True,
        )
    if not result.success:
        sys.exit(1)


@cli.command("show-ranking")
@click.option(
    "--type",
    "ranking_type",
    required=True,
    type=click.Choice([t.value for t in RankingType]),
    help="Ranking type to show.",
)
@click.option("--limit", type=int, default=20, help="Entries to show.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@engine_options
def show_ranking(  # noqa: PLR0913
    ranking_type: str,
    limit: int,
    json_output: bool,
    state_path: Path | None,
    signals_path: Path | None,
    config_path: Path | None,
    json_logs: bool,
    verbose: bool,
) -> None:
    """Show the active snapshot of a ranking type."""
    options = _resolve_options(state_path, signals_path, config_path, json_logs, verbose)
    with _engine(options, "show-ranking") as engine:
        manager = RankingSnapshotManager(engine.reader, engine.store, engine.config)
        ranking = manager.get_active_ranking(RankingType(ranking_type), limit=limit)

    if json_output:
        click.echo(ranking.model_dump_json(indent=2))
        return

    if ranking.status == ReadStatus.NOT_COMPUTED or ranking.snapshot is None:
        click.echo(f"{ranking_type}: not computed. {ranking.hint}")
        return

    snapshot = ranking.snapshot
    click.echo(f"{snapshot.display_name} (snapshot {snapshot.id})")
    period = f"{snapshot.period_start.isoformat()} .. {snapshot.period_end.isoformat()}"
    click.echo(f"  Period: {period}")
    click.echo(f"  Computed: {snapshot.computed_at.isoformat()}")
    click.echo("=" * 40)
    for entry in ranking.entries:
        tag = f" [{entry.evaluation_tag.value}]" if entry.evaluation_tag else ""
        click.echo(
            f"  {entry.rank:>3}. {entry.title} ({entry.score:.1f}, {entry.rank_change:+d}){tag}"
        )


@cli.command("db-stats")
@click.option(
    "--state",
    "state_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to the engine SQLite database.",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output as JSON.",
)
def db_stats(state_path: Path, json_output: bool) -> None:
    """Display engine database statistics.

    Shows row counts for all tables and the schema version.
    """
    configure_logging(json_format=False)

    with EngineStore(db_path=state_path) as store:
        stats = store.get_stats()
        schema_version = store.get_schema_version()

    if json_output:
        click.echo(json.dumps({"schema_version": schema_version, "tables": stats}, indent=2))
        return

    click.echo("Engine Database Statistics")
    click.echo("=" * 40)
    click.echo(f"  Schema Version: {schema_version}")
    click.echo("")
    click.echo("Table Row Counts:")
    for table, count in sorted(stats.items()):
        click.echo(f"  {table}: {count}")


@cli.command()
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to engine.yaml.",
)
def validate(config_path: Path) -> None:
    """Validate an engine configuration file."""
    run_id = str(uuid.uuid4())
    configure_logging(json_format=False)
    loader = ConfigLoader(run_id=run_id)

    try:
        config = loader.load(config_path)
    except ConfigValidationError:
        click.echo("Configuration validation failed:", err=True)
        for error in loader.validation_errors:
            click.echo(f"  - {error['loc']}: {error['msg']}", err=True)
        sys.exit(1)

    click.echo("Configuration is valid!")
    click.echo(f"  Rankings: {len(config.rankings)}")
    click.echo(f"  Checksum: {loader.file_checksum}")


if __name__ == "__main__":
    cli()
