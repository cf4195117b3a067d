"""FastAPI application exposing the analysis stream over HTTP."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.datastructures import UploadFile

from ..config import RepoProbeConfig, load_config
from ..events import NDJSON_MEDIA_TYPE, encode_event
from ..logging import get_logger
from ..orchestrator import AnalysisOrchestrator, AnalysisRequest
from ..storage import FilesystemObjectStore, ObjectStore, new_object_key

_ARCHIVE_FIELDS = ("zip", "archive")
_JSON_FORM_FIELDS = ("selectedModules", "envVars")

logger = get_logger("service")


class AnalyzePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo: Optional[str] = None
    root_path: Optional[str] = Field(default=None, alias="rootPath")
    remote_archive_url: Optional[str] = Field(default=None, alias="remoteArchiveUrl")
    object_key: Optional[str] = Field(default=None, alias="objectKey")
    filename: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    selected_modules: Optional[List[str]] = Field(default=None, alias="selectedModules")
    env_vars: Dict[str, str] = Field(default_factory=dict, alias="envVars")
    # Accepted for compatibility with older clients; not used.
    task: Optional[str] = None

    def to_request(self, archive: Optional[bytes] = None) -> AnalysisRequest:
        return AnalysisRequest(
            repo=self.repo,
            root_path=self.root_path,
            remote_archive_url=self.remote_archive_url,
            object_key=self.object_key,
            filename=self.filename,
            archive=archive,
            session_id=self.session_id,
            selected_modules=self.selected_modules,
            env_vars=dict(self.env_vars),
        )


class UploadResponse(BaseModel):
    key: str
    filename: Optional[str] = None


class HealthResponse(BaseModel):
    status: str


def create_app(
    orchestrator: AnalysisOrchestrator | None = None,
    *,
    object_store: ObjectStore | None = None,
    config: RepoProbeConfig | None = None,
) -> FastAPI:
    """Create the FastAPI application; one orchestrator serves every request."""
    store = object_store
    if store is None or orchestrator is None:
        settings = config or load_config()
        store = store or FilesystemObjectStore(settings.storage.directory, ttl=settings.storage.ttl)
        orchestrator = orchestrator or AnalysisOrchestrator.from_config(settings, object_store=store)

    app = FastAPI(title="RepoProbe Service", version="0.1.0")
    app.state.orchestrator = orchestrator
    app.state.object_store = store

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/api/analyze")
    async def analyze(request: Request) -> StreamingResponse:
        payload, archive = await _read_analyze_body(request)
        analysis = payload.to_request(archive)

        async def _stream() -> AsyncIterator[str]:
            async for event in orchestrator.submit(analysis):
                yield encode_event(event)

        return StreamingResponse(
            _stream(),
            media_type=NDJSON_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache"},
        )

    @app.post("/api/uploads", response_model=UploadResponse)
    async def upload(request: Request) -> UploadResponse:
        form = await request.form()
        part = _first_upload(form, ("file", *_ARCHIVE_FIELDS))
        if part is None:
            raise HTTPException(status_code=400, detail="Expected a file part named 'file'")
        data = await part.read()
        if not data:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")
        key = new_object_key(part.filename)
        await store.put(key, data)
        logger.info("Stored upload %s (%d bytes)", key, len(data))
        return UploadResponse(key=key, filename=part.filename)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(_: Any, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_encoder(exc.errors(include_url=False))},
        )

    return app


async def _read_analyze_body(request: Request) -> tuple[AnalyzePayload, Optional[bytes]]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        fields: Dict[str, Any] = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile) or value == "":
                continue
            fields[key] = _decode_json_field(value) if key in _JSON_FORM_FIELDS else value
        archive_part = _first_upload(form, _ARCHIVE_FIELDS)
        archive: Optional[bytes] = None
        if archive_part is not None:
            archive = await archive_part.read()
            fields.setdefault("filename", archive_part.filename)
        return AnalyzePayload.model_validate(fields), archive

    body = await request.body()
    try:
        data = json.loads(body) if body.strip() else {}
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    return AnalyzePayload.model_validate(data), None


def _decode_json_field(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError:
        return value


def _first_upload(form: Any, names: tuple[str, ...]) -> Optional[UploadFile]:
    for name in names:
        value = form.get(name)
        if isinstance(value, UploadFile):
            return value
    return None


def run_service(
    host: str = "0.0.0.0", port: int = 8000, *, config: RepoProbeConfig | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(config=config)
    uvicorn.run(app, host=host, port=port)
