"""Command-line tools for the comparison engine."""

import asyncio
import json

import click

from rankinsight.cache.comparison_cache import MemoryComparisonCache
from rankinsight.comparison.service import UserComparisonService
from rankinsight.core.logging import get_logger, setup_logging
from rankinsight.db.base import Base
from rankinsight.db.engine import create_db_engine
from rankinsight.db.session import create_session_factory
from rankinsight.population.seed import generate_profiles, seed_users
from rankinsight.population.sql_gateway import SqlPopulationGateway

logger = get_logger(__name__)


@click.group()
@click.option("--database-url", envvar="DATABASE_URL", help="Overrides DATABASE_URL")
@click.option("--log-level", default="INFO")
@click.pass_context
def cli(ctx: click.Context, database_url: str | None, log_level: str):
    """Comparison engine CLI."""
    setup_logging(log_level)
    ctx.obj = create_db_engine(database_url)


@cli.command()
@click.option("--count", type=int, default=50, show_default=True, help="Number of users")
@click.option("--seed", type=int, default=42, show_default=True, help="Random seed")
@click.pass_obj
def seed(engine, count: int, seed: int):
    """Create tables and seed a synthetic population."""
    Base.metadata.create_all(bind=engine)
    with create_session_factory(engine)() as db:
        written = seed_users(db, generate_profiles(count, seed=seed))
    click.echo(f"Seeded {written} users")


@cli.command()
@click.argument("user_id")
@click.pass_obj
def compare(engine, user_id: str):
    """
    Print the comparison for USER_ID as JSON.

    Example:
        python -m rankinsight.cli compare u00001
    """
    service = UserComparisonService(
        SqlPopulationGateway(create_session_factory(engine)),
        MemoryComparisonCache(),
    )
    comparison = asyncio.run(service.get_user_comparison(user_id))
    if comparison is None:
        click.echo(f"No comparison for user {user_id}", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(comparison.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    cli()
