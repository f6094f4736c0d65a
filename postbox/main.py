import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import ClientDisconnect
from starlette.routing import request_response
import uvicorn
from postbox import config
from postbox.config import Config, Context
from postbox.errors import BodyTooLargeError, PathEscapeError
from postbox.logger_config import setup_logger, set_console_level
from postbox.monitor import FailureMonitor
from postbox.app.services.classifier import classify, PageNotFound, Store
from postbox.app.services.responder import Responder, error_response, status_response
from postbox.app.services.storage_manager import StorageManager

logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await app.state.storage_manager.initialize()
    yield


def request_path(request: Request) -> Optional[str]:
    """The request target exactly as sent, without the query string.

    Returns None when it is not valid UTF-8. The query string is dropped,
    so `POST /x?y` stores `x` and `POST /?y` is not found.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path is None:
        return request.scope["path"]
    try:
        return raw_path.split(b"?", 1)[0].decode("utf-8")
    except UnicodeDecodeError:
        return None


async def read_body(request: Request, limit: int) -> bytes:
    """Buffer the whole request body, refusing anything over ``limit`` bytes."""
    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit() and int(content_length) > limit:
        raise BodyTooLargeError(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise BodyTooLargeError(limit)
    return bytes(body)


async def dispatch(request: Request) -> Response:
    """Classify the request, buffer its body when storing, and respond."""
    responder: Responder = request.app.state.responder
    path = request_path(request)
    if path is None:
        logger.info(f"{request.method} with undecodable path")
        return await responder.produce(PageNotFound())

    action = classify(request.method, path)
    logger.info(f"{request.method} {path} -> {type(action.outcome).__name__}")

    if not isinstance(action.outcome, Store):
        return await responder.produce(action.outcome)

    try:
        body = await asyncio.wait_for(read_body(request, action.max_body), timeout=action.timeout)
    except BodyTooLargeError as e:
        logger.warning(f"Rejected {path}: {e}")
        return error_response(e, {"Connection": "close"})
    except asyncio.TimeoutError:
        logger.warning(f"Body for {path} not received within {action.timeout}s")
        return status_response(408, "Request Timeout", {"Connection": "close"})
    except ClientDisconnect:
        logger.info(f"Client went away while sending {path}")
        return status_response(400, "Bad Request", {"Connection": "close"})

    logger.debug(f"Received {len(body)} bytes for {path}")
    return await responder.produce(action.outcome, body)


class Dispatcher:
    """ASGI endpoint for `dispatch`.

    Starlette limits plain function endpoints to GET unless given a method
    list; an ASGI callable is routed for every method, unknown ones included.
    """

    def __init__(self):
        self.app = request_response(dispatch)

    async def __call__(self, scope, receive, send):
        await self.app(scope, receive, send)


async def path_escape_handler(request: Request, exc: PathEscapeError) -> Response:
    logger.critical(f"Refusing {request.method} {request.url.path}: {exc}")
    return status_response(500, "Internal Server Error")


async def not_found_handler(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == 404:
        return await request.app.state.responder.produce(PageNotFound())
    return status_response(exc.status_code, exc.detail, exc.headers)


def create_app(context: Context) -> FastAPI:
    app = FastAPI(
        title="postbox",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.context = context
    app.state.storage_manager = StorageManager(context)
    app.state.monitor = FailureMonitor(config.FAILURE_THRESHOLD, config.FAILURE_WINDOW_SECONDS)
    app.state.responder = Responder(context, app.state.storage_manager, app.state.monitor)
    app.add_route("/{path:path}", Dispatcher())
    app.add_exception_handler(StarletteHTTPException, not_found_handler)
    app.add_exception_handler(PathEscapeError, path_escape_handler)
    return app


def run(argv: Optional[List[str]] = None):
    cfg = Config.from_args(argv)
    set_console_level(getattr(logging, cfg.log_level))
    context = cfg.context()
    if not context.root_url.endswith("/"):
        logger.warning(f"Root URL {context.root_url!r} does not end with '/'")

    app = create_app(context)
    logger.info("Starting postbox...")
    logger.info(f"Storage root: {context.file_root}")
    logger.info(f"Listening to {cfg.listen_address}")
    if cfg.unix is not None:
        uvicorn.run(app, uds=cfg.unix, log_level=cfg.log_level.lower())
    else:
        host, port = cfg.tcp
        uvicorn.run(app, host=host, port=port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    run()
