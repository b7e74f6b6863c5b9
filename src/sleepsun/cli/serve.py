"""CLI command to start the sleep/sun API server."""

import logging
import click
import uvicorn

from ..engine import SleepSunEngine
from ..errors import ValidationError
from ..model.config import load_config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Configuration file path",
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (default: 127.0.0.1)",
)
@click.option(
    "--port",
    default=8080,
    type=int,
    help="Port to bind to (default: 8080)",
)
@click.option(
    "--backend",
    type=click.Choice(["sqlite", "memory"]),
    help="Storage backend (overrides config)",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False),
    help="SQLite database path (overrides config)",
)
def main(config, host, port, backend, db_path):
    """Start the sleep/sun API server.

    Examples:
        # Start with defaults (sqlite database in the current directory)
        sleepsun-serve

        # Keep everything in memory
        sleepsun-serve --backend memory

        # Load configuration file
        sleepsun-serve --config config.example.yaml
    """
    try:
        cfg = load_config(config, backend=backend, db_path=db_path)
    except ValidationError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        raise SystemExit(1)

    engine = SleepSunEngine(cfg)
    app = engine.get_api_app()

    click.echo(f"Backend: {cfg.backend}" + (f" ({cfg.db_path})" if cfg.backend == "sqlite" else ""))
    click.echo(f"Starting API server on http://{host}:{port}")
    click.echo(f"   • Sessions:      http://{host}:{port}/api/sessions")
    click.echo(f"   • Health Check:  http://{host}:{port}/health")
    click.echo(f"   • API Docs:      http://{host}:{port}/docs")
    click.echo()

    try:
        uvicorn.run(app, host=host, port=port, log_level="info")
    except KeyboardInterrupt:
        click.echo("\nShutting down...")


if __name__ == "__main__":
    main()
