import asyncio
import json
import logging

import click

from ..engine import SleepSunEngine
from ..errors import SleepSunError
from ..io.snapshot import read_snapshot, write_snapshot
from ..model.config import load_config

logger = logging.getLogger(__name__)


async def _export(cfg, out):
  async with SleepSunEngine(cfg) as engine:
    snapshot = await engine.export_data()
  write_snapshot(out, snapshot)
  return snapshot


async def _import(cfg, path, clear):
  snapshot = read_snapshot(path)
  async with SleepSunEngine(cfg) as engine:
    return await engine.import_data(snapshot, clear=clear)


@click.command()
@click.option("--config", type=click.Path(exists=True))
@click.option("--db", "db_path", type=click.Path(dir_okay=False))
@click.option("--out", required=True, type=click.Path(dir_okay=False))
def export_cmd(config, db_path, out):
  cfg = load_config(config, db_path=db_path)
  try:
    snapshot = asyncio.run(_export(cfg, out))
  except SleepSunError as e:
    raise click.ClickException(str(e))
  meta = snapshot.meta
  click.echo(json.dumps({"out": out, "sleepSessions": meta.sleep_count, "sunTimes": meta.sun_count, "datasetHash": meta.dataset_hash}))


@click.command()
@click.option("--config", type=click.Path(exists=True))
@click.option("--db", "db_path", type=click.Path(dir_okay=False))
@click.option("--clear", is_flag=True, help="Remove existing data before loading")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_cmd(config, db_path, clear, path):
  cfg = load_config(config, db_path=db_path)
  try:
    counts = asyncio.run(_import(cfg, path, clear))
  except SleepSunError as e:
    raise click.ClickException(str(e))
  click.echo(json.dumps(counts))


if __name__ == "__main__":
  export_cmd()
