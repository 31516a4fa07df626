""" main.py: FastAPI application entry point and runtime wiring.

This module builds the ASGI app, mounts the API routers, registers the error
handlers and exposes a Prometheus metrics endpoint. The lifespan hook boots the
stateful parts once per process: the SQLite store, the shared classifier
(loaded from disk, or empty when loading fails), the Dispatcher, and the remote
invocation listener packages call back into. None of these steps can stop the
HTTP server from starting; failures are logged and the affected feature
degrades. When executed directly with --server, it starts a Uvicorn server.
"""

import argparse
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from config import CONFIG, check_base_url
from core.classifier import BayesClassifier
from core.orchestrator import Dispatcher
from packages.registry import PackageRegistry
from packages.router import PackageRouter
from rpc.listener import RemoteInvocationListener
from services.context_tracker import ContextTracker
from services.database import init_db
from services.interaction_logger import InteractionLogger
from services.user_resolver import UserResolver
from version import __version__

# --- Router Imports ---
from api import boundary as boundary_router
from api import message as message_router
from api.error_handlers import register_error_handlers

logger = logging.getLogger(__name__)


def build_dispatcher(config: dict, classifier: BayesClassifier) -> Dispatcher:
    """Wire every pipeline stage from configuration around an already loaded classifier."""
    db_path = config['paths']['database_full_path']
    return Dispatcher(
        classifier=classifier,
        user_resolver=UserResolver(db_path),
        context_tracker=ContextTracker(db_path, window_seconds=config['context']['window_seconds']),
        router=PackageRouter(
            PackageRegistry.from_config(config.get('packages', [])),
            timeout_s=config['packages_timeout_s'],
        ),
        interaction_logger=InteractionLogger(db_path),
        fallback_reply=config['language']['confused'],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    for problem in check_base_url():
        logger.warning(f"[lifespan] {problem}")

    db_path = CONFIG['paths']['database_full_path']
    try:
        init_db(db_path)
    except Exception as e:
        logger.error(f"[lifespan] Could not initialize database at {db_path}: {e}")

    classifier = BayesClassifier(CONFIG['paths']['classifier_full_path'])
    classifier.load()
    app.state.dispatcher = build_dispatcher(CONFIG, classifier)

    rpc_port = CONFIG['rpc']['port'] or CONFIG['server']['port'] + 1
    listener = RemoteInvocationListener(
        app.state.dispatcher.user_resolver,
        host=CONFIG['rpc']['host'],
        port=rpc_port,
        timeout_s=CONFIG['rpc']['timeout_s'],
    )
    await listener.start()
    app.state.listener = listener

    logger.info(f"[lifespan] Booted ava {__version__}")
    try:
        yield
    finally:
        await listener.stop()


app = FastAPI(title="ava", version=__version__, lifespan=lifespan)

app.include_router(message_router.router, tags=["Message"])
app.include_router(boundary_router.router, tags=["Boundary"])
register_error_handlers(app)

# Add Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ava", description="general purpose ai platform")
    parser.add_argument("-s", "--server", action="store_true", help="run server")
    parser.add_argument("-p", "--port", type=int, default=CONFIG['server']['port'], help="set port for server")
    parser.add_argument("--version", action="version", version=__version__)
    return parser.parse_args(argv)


if __name__ == '__main__':
    import uvicorn
    args = parse_args()
    if not args.server:
        parse_args(["--help"])
    CONFIG['server']['port'] = args.port
    logger.info("[__main__] Starting Uvicorn server for main.py")
    uvicorn.run(app, host=CONFIG['server']['host'], port=args.port)
