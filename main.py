import argparse
import asyncio
import logging
import sys

import uvicorn

from relief_sync import __version__
from relief_sync.config import load_settings
from relief_sync.drivers import DriverRegistry
from relief_sync.network import LocalBridge
from relief_sync.services import (
    BackendClient,
    ConnectivityMonitor,
    StatusReporter,
    SyncManager,
    init_queue_manager,
    reset_queue_manager,
)
from relief_sync.status_api import create_app

logger = logging.getLogger("Main")


def build_services(settings):
    """Wire the queue, drivers, connectivity and sync manager together."""
    queue = init_queue_manager(settings.queue_db_path)
    backend = BackendClient(settings)
    connectivity = ConnectivityMonitor()
    registry = DriverRegistry.default(backend, bucket=settings.media_bucket)
    sync = SyncManager(
        queue, registry, connectivity, backend,
        submit_timeout=settings.submit_timeout_seconds,
        sync_interval=settings.sync_interval_seconds,
    )
    reporter = StatusReporter(queue, stalled_attempts=settings.stalled_attempts)
    sync.on_sync_complete(reporter.notify_sync_completed)
    return queue, backend, connectivity, sync, reporter


async def run_once(settings) -> int:
    queue, backend, connectivity, sync, reporter = build_services(settings)
    if not backend.is_configured():
        logger.warning("Backend not configured (SUPABASE_URL / SUPABASE_ANON_KEY); nothing synced")
    else:
        await connectivity.probe(backend)
    summary = await sync.drain("once")
    logger.info(f"Drain result: {summary.to_dict()}")
    logger.info(f"Queue status: {reporter.snapshot().to_dict()}")
    return 1 if summary.status == "error" else 0


async def run_forever(settings):
    queue, backend, connectivity, sync, reporter = build_services(settings)

    bridge = LocalBridge(queue, sync, reporter, connectivity)
    app = create_app(queue, sync, reporter, connectivity)
    server = uvicorn.Server(uvicorn.Config(
        app, host="0.0.0.0", port=settings.status_api_port, log_level=settings.log_level.lower()
    ))

    reporter.on_update(lambda status: logger.debug(f"Queue status: {status.to_dict()}"))

    tasks = [
        asyncio.create_task(bridge.serve(port=settings.local_bridge_port)),
        asyncio.create_task(sync.run_periodic()),
        asyncio.create_task(reporter.run_polling(settings.status_poll_seconds)),
        asyncio.create_task(server.serve()),
    ]
    try:
        await asyncio.gather(*tasks)
    finally:
        sync.stop()
        for task in tasks:
            task.cancel()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Offline submission queue sync service")
    parser.add_argument("--once", action="store_true", help="drain the queue once and exit")
    args = parser.parse_args(argv)

    # 1. Configuration
    try:
        settings = load_settings()
    except ValueError as e:
        print(f"[!] Configuration error: {e}")
        sys.exit(1)

    # 2. Logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"=== Relief Sync v{__version__} ===")
    logger.info(f"Queue database: {settings.queue_db_path}")
    logger.info(f"Backend configured: {settings.backend_configured}")

    # 3. Run
    try:
        if args.once:
            sys.exit(asyncio.run(run_once(settings)))
        asyncio.run(run_forever(settings))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        reset_queue_manager()


if __name__ == "__main__":
    main()
