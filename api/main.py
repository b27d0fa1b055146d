import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from core import config, log
from core.db import ConnectionCache
from core.errors import ParcelsError
from parcels import service as parcels_service
from parcels.dependencies import get_repository
from parcels.repository import ParcelRepository
from parcels.router import router as parcels_router
from payments.router import router as payments_router

logger = logging.getLogger(__name__)


def create_app(connections: ConnectionCache | None = None) -> FastAPI:
    """
    Build the API. Direct listeners and function-per-invocation hosts share
    this factory; each process gets exactly one connection cache.
    """
    log.configure_logging()
    cache = connections or ConnectionCache()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        # The store connection is opened lazily by the first request.
        try:
            yield
        finally:
            await cache.close()

    app = FastAPI(title="Parcels API", lifespan=lifespan)
    app.state.connections = cache

    # Any origin may call this API from the browser, cookies included.
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept"],
    )

    @app.exception_handler(ParcelsError)
    async def parcels_error_handler(request: Request, exc: ParcelsError) -> JSONResponse:
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "request_failed method=%s path=%s status=%s error_type=%s detail=%s",
            request.method,
            request.url.path,
            exc.status_code,
            type(exc).__name__,
            exc.detail,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.body())

    app.include_router(parcels_router, tags=["parcels"])
    app.include_router(payments_router, tags=["payments"])

    @app.get("/")
    def root() -> PlainTextResponse:
        return PlainTextResponse("Zap Shift Server is running")

    @app.get("/favicon.ico", include_in_schema=False)
    @app.get("/favicon.png", include_in_schema=False)
    def favicon() -> Response:
        return Response(status_code=204)

    @app.get("/health")
    async def health(repository: ParcelRepository = Depends(get_repository)) -> dict:
        return await parcels_service.check_health(repository)

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host="0.0.0.0", port=config.listen_port())


if __name__ == "__main__":
    run()
