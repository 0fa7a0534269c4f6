"""HTTP endpoints for reading and updating project archives.

Routes wrap ModelArchivePlugin; engine errors map to 400 (bad request),
422 (unreadable archive) or 500.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from wktarchive.core.config import ConfigResolver
from wktarchive.core.errors import (
    ArchiveReadError,
    InvalidOperationError,
    SourcePathError,
    UnknownOperationError,
    WktArchiveError,
)
from wktarchive.core.logging import get_logger

from .plugin import ModelArchivePlugin

log = get_logger(__name__)

_BAD_REQUEST = (SourcePathError, UnknownOperationError, InvalidOperationError)


class ArchiveContentsRequest(BaseModel):
    project_dir: str
    archive_files: list[str] | None = None


class ArchiveSaveRequest(BaseModel):
    project_dir: str
    updates: dict[str, list[dict[str, Any]]] | None = None


def _get_plugin(request: Request) -> ModelArchivePlugin:
    plugin = getattr(request.app.state, "model_archive", None)
    if isinstance(plugin, ModelArchivePlugin):
        return plugin
    resolver = getattr(request.app.state, "config_resolver", None)
    if not isinstance(resolver, ConfigResolver):
        resolver = ConfigResolver()
    return ModelArchivePlugin(resolver=resolver)


def _status_for(e: WktArchiveError) -> int:
    if isinstance(e, _BAD_REQUEST):
        return 400
    if isinstance(e, ArchiveReadError):
        return 422
    return 500


def _http_error(e: WktArchiveError) -> HTTPException:
    status = _status_for(e)
    if status >= 500:
        log.error(f"archive request failed: {type(e).__name__}: {e}")
    return HTTPException(
        status_code=status, detail={"error": type(e).__name__, "message": str(e)}
    )


def mount_model_archive(app: FastAPI) -> None:
    """Archive endpoints.

    Malformed request bodies are rejected with 400; 422 is reserved for
    archives that cannot be read.
    """

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.post("/api/archive/contents")
    async def archive_contents(request: Request, body: ArchiveContentsRequest) -> dict[str, Any]:
        plugin = _get_plugin(request)
        try:
            contents = await plugin.get_contents_of_archive_files(
                body.project_dir, body.archive_files
            )
        except WktArchiveError as e:
            raise _http_error(e) from e
        return {"contents": contents}

    @app.post("/api/archive/save")
    async def archive_save(request: Request, body: ArchiveSaveRequest) -> dict[str, Any]:
        plugin = _get_plugin(request)
        try:
            contents = await plugin.save_contents_of_archive_files(body.project_dir, body.updates)
        except WktArchiveError as e:
            raise _http_error(e) from e
        return {"contents": contents}


def create_app(
    *,
    config_resolver: ConfigResolver | None = None,
    plugin: ModelArchivePlugin | None = None,
) -> FastAPI:
    app = FastAPI(title="wktarchive")
    app.state.config_resolver = config_resolver
    app.state.model_archive = plugin
    mount_model_archive(app)
    return app
