"""
FastAPI app
"""

from importlib.metadata import version

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from peerhub.service.store import StoreFailure

from .admin import admin_routes
from .dependencies import DATABASE_MANAGER, logger
from .groups import group_app


async def lifespan(app: FastAPI):
    yield
    await DATABASE_MANAGER().dispose()


async def store_failure_handler(request: Request, exc: StoreFailure) -> JSONResponse:
    await logger().awarning("api.store_failure", path=request.url.path, detail=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)}
    )


def add_exception_handlers(app: FastAPI) -> FastAPI:
    app.add_exception_handler(StoreFailure, store_failure_handler)
    return app


app = FastAPI(
    lifespan=lifespan,
    title="PeerHub community API",
    summary="Permission-gated group management and data cleanup for the PeerHub community platform.",
    version=version("peerhub"),
)

app = add_exception_handlers(app)

app.include_router(admin_routes, prefix="/admin")
app.include_router(group_app, prefix="/groups")
