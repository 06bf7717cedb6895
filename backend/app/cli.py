"""
PulseWatch 命令行入口模块。

提供 CLI 命令：serve（运行 API 服务）、check（执行一次健康检查 tick）
和 prune（按保留期清理一次数据）。
"""
import asyncio
import logging
import sys

import click
from sqlalchemy import select

from app.core.config import settings

__version__ = "0.1.0"


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, verbose):
    """PulseWatch - Web 服务健康监控与告警。"""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host, port):
    """运行 API 服务（含后台调度器）。"""
    import uvicorn

    uvicorn.run("app.main:app", host=host, port=port, log_level=settings.log_level.lower())


async def _run_check() -> list[tuple[str, str, str, str]]:
    from app.core.database import Database
    from app.core.redis import close_redis, create_redis
    from app.models.service import Service
    from app.services.broadcaster import EventBroadcaster
    from app.tasks.health_check_scheduler import build_monitor, create_http_client

    database = Database(settings.database_url)
    redis_client = create_redis(settings.redis_url)
    http_client = create_http_client(settings)
    try:
        await database.create_all()
        scheduler = build_monitor(settings, database, http_client, EventBroadcaster(), redis_client)
        result = await scheduler.run_tick()
        if result is None:
            raise click.ClickException("Health check tick held by another instance")

        async with database.session_factory() as db:
            rows = await db.execute(select(Service.id, Service.name))
            names = {r.id: r.name for r in rows.all()}

        return [
            (
                names.get(m.service_id, str(m.service_id)),
                m.status,
                f"{m.response_time_ms}ms" if m.response_time_ms is not None else "-",
                m.error or "",
            )
            for m in result.metrics
        ]
    finally:
        await http_client.aclose()
        await close_redis(redis_client)
        await database.dispose()


@cli.command()
def check():
    """执行一次健康检查 tick 并打印结果。"""
    try:
        rows = asyncio.run(_run_check())
    except click.ClickException:
        raise
    except Exception as e:
        logging.getLogger("pulsewatch").exception("Health check failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not rows:
        click.echo("No services registered")
        return
    width = max(len(r[0]) for r in rows)
    for name, status, latency, error in rows:
        click.echo(f"{name:<{width}}  {status:<9} {latency:>8}  {error}")


async def _run_prune(metric_days: int, log_days: int) -> dict:
    from app.core.database import Database
    from app.tasks.metric_cleanup import prune_expired

    database = Database(settings.database_url)
    try:
        return await prune_expired(database.session_factory, metric_days, log_days)
    finally:
        await database.dispose()


@cli.command()
@click.option("--metric-days", type=int, default=None, help="Probe result retention in days")
@click.option("--log-days", type=int, default=None, help="Activity log retention in days")
def prune(metric_days, log_days):
    """按保留期清理一次探测结果和活动日志。"""
    metric_days = metric_days if metric_days is not None else settings.metric_retention_days
    log_days = log_days if log_days is not None else settings.log_retention_days
    result = asyncio.run(_run_prune(metric_days, log_days))
    click.echo(f"Deleted {result['metrics_deleted']} metrics, {result['logs_deleted']} logs")


def main():
    """CLI 入口函数。"""
    cli()


if __name__ == "__main__":
    main()
