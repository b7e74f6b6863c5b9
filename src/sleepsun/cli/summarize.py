import asyncio

import click

from ..services.statistics import StatisticsEngine
from ..io.snapshot import read_snapshot


async def _summarize(snapshot, utc_offset):
  # Explicit records only; no store or network is needed.
  stats = StatisticsEngine(tracker=None, sun_times=None)
  sessions = snapshot.sleep_sessions
  averages = await stats.get_averages(sessions, utc_offset=utc_offset)
  graph = await stats.get_graph(sessions, utc_offset=utc_offset)
  return averages, graph


@click.command()
@click.option("--snapshot", "path", required=True, type=click.Path(exists=True))
@click.option("--utc-offset", default=0, type=int, help="Seconds east of UTC for clock times")
def main(path, utc_offset):
  snapshot = read_snapshot(path)
  if not snapshot.sleep_sessions:
    click.echo("No sleep sessions in snapshot")
    return
  averages, graph = asyncio.run(_summarize(snapshot, utc_offset))

  width = max(len(day) for day in graph)
  click.echo("Date".ljust(width) + " | Slept    | Height")
  click.echo("-" * width + "-|----------|-------")
  for day, bucket in graph.items():
    click.echo(day.ljust(width) + f" | {bucket.duration_time} | {bucket.height:6.2f}")
  click.echo(
    f"Sessions: {len(snapshot.sleep_sessions)}, "
    f"mean start {averages.start.mean_time}, mean end {averages.end.mean_time}, "
    f"mean duration {averages.duration_time}"
  )


if __name__ == "__main__":
  main()
