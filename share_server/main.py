from contextlib import asynccontextmanager
from http import HTTPStatus

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from app.services.errors import UpshareError
from app.services.file_server import FileServer
from app.services.methods import RequestMethod
from app.services.path_guard import guard_path
from app.services.sharer import Sharer, provision_share_dir
from app.services.uploader import Uploader
from logger_config import setup_logger
from monitor import Monitor

# Logger setup
logger = setup_logger()

ALL_METHODS = [method.value for method in RequestMethod]
UPLOAD_METHODS = [m for m in ALL_METHODS if m not in (RequestMethod.GET, RequestMethod.HEAD)]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One handler of each kind, built from the configuration at startup
    share_dir = provision_share_dir(config.SHARE_DIR)
    app.state.sharer = Sharer(share_dir)
    app.state.uploader = Uploader()
    app.state.file_server = FileServer()
    app.state.monitor = Monitor(config.FAILURE_THRESHOLD, config.FAILURE_WINDOW_SECONDS)
    yield


app = FastAPI(title="Upshare File Server", lifespan=lifespan)


@app.exception_handler(UpshareError)
async def upshare_error_handler(request: Request, exc: UpshareError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        request.app.state.monitor.fail()
    else:
        logger.debug(f"{request.method} {request.url.path} rejected with {int(exc.status_code)}: {exc}")

    return PlainTextResponse(exc.body, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Router and form-parsing errors get the same plain-text body as handler errors."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        request.app.state.monitor.fail()
    else:
        logger.debug(f"{request.method} {request.url.path} rejected with {exc.status_code}: {exc.detail}")

    message = exc.detail or HTTPStatus(exc.status_code).phrase
    return PlainTextResponse(f"Error: {message}", status_code=exc.status_code, headers=exc.headers)


@app.api_route(config.SHARE_PREFIX, methods=ALL_METHODS, include_in_schema=False)
@app.api_route(config.SHARE_PREFIX + "/{path:path}", methods=ALL_METHODS)
async def share(request: Request):
    """Resolve a share (GET) or create one for ?path= (POST)."""
    state = request.app.state
    response = await state.sharer.handle(request, request.path_params.get("path", ""), state.file_server.serve)
    state.monitor.pass_()
    return response


@app.get(config.UPLOAD_PREFIX, include_in_schema=False)
@app.get(config.UPLOAD_PREFIX + "/{path:path}")
async def browse(request: Request):
    """Download a file or list a directory of the served tree."""
    state = request.app.state
    path = guard_path(request.path_params.get("path", ""))
    response = await state.file_server.serve(state.uploader.request_config(request), path)
    state.monitor.pass_()
    return response


@app.api_route(config.UPLOAD_PREFIX, methods=UPLOAD_METHODS, include_in_schema=False)
@app.api_route(config.UPLOAD_PREFIX + "/{path:path}", methods=UPLOAD_METHODS)
async def upload(request: Request):
    """Upload files or create a directory (POST), or delete files (DELETE)."""
    state = request.app.state
    response = await state.uploader.handle(request, request.path_params.get("path", ""))
    state.monitor.pass_()
    return response


@app.get("/health")
async def health_check(request: Request):
    return {"status": "ok", "stats": request.app.state.monitor.stats}


if __name__ == "__main__":
    logger.info("Starting Upshare File Server...")
    logger.info(f"Root directory: {config.ROOT_DIR}")
    logger.info(f"Share directory: {config.SHARE_DIR}")
    uvicorn.run(app, host=config.HOST, port=config.PORT)
