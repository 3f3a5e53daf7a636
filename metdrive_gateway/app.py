from __future__ import annotations

import html
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .artwork_finder import COLLECTION_HOST, ArtworkFinder, ArtworkRecord, NotFound
from .folder_resolver import DRIVE_HOST, FOLDER_NAME, FolderResolver, FolderStore
from .http_client import HttpClientError, HttpJsonClient
from .multipart import MultipartEncoder
from .oauth import (
    AUTHORIZATION_BASE_URL,
    DRIVE_SCOPE,
    TOKEN_URL,
    AuthExchangeError,
    GatewaySession,
    OAuthTokenManager,
)
from .serializer import RequestSerializer, WorkflowTimeoutError
from .upload_workflow import UploadError, UploadWorkflow

logger = logging.getLogger(__name__)


@dataclass
class GatewayConfig:
    host: str = "127.0.0.1"
    port: int = 3000
    # OAuth settings
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/oauth2callback"
    scope: str = DRIVE_SCOPE
    authorization_base_url: str = AUTHORIZATION_BASE_URL
    token_url: str = TOKEN_URL
    # Remote APIs
    collection_host: str = COLLECTION_HOST
    drive_host: str = DRIVE_HOST
    folder_name: str = FOLDER_NAME
    folder_store_path: Path = Path("folder_id.txt")
    # Timeouts (seconds); None disables
    request_timeout: Optional[float] = 30.0
    workflow_timeout: Optional[float] = 120.0
    force_ipv4: bool = False

    def resolved_folder_store(self) -> Path:
        path = Path(self.folder_store_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        return path


@dataclass
class GatewayState:
    config: GatewayConfig
    serializer: RequestSerializer
    session: GatewaySession
    http: HttpJsonClient
    oauth: OAuthTokenManager
    finder: ArtworkFinder
    folders: FolderResolver
    uploads: UploadWorkflow


class QueueStatus(BaseModel):
    running: bool
    active: bool
    pending: int
    completed: int
    workflow_timeout: Optional[float] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    queue: QueueStatus
    authenticated: bool
    folder_cached: bool
    folder_store: str


HOME_PAGE = """
<form method="POST" action="/search">
    <label>Search MET Artworks:</label>
    <input type="text" name="keyword" required />
    <button type="submit">Search</button>
</form>
<p><a href="/auth">Login to Google</a> first.</p>
"""


def _page(message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(f"<h1>{message}</h1>", status_code=status_code)


def _artwork_page(artwork: ArtworkRecord) -> HTMLResponse:
    title = html.escape(artwork.file_stem)
    artist = html.escape(artwork.display("artist"))
    image = html.escape(artwork.image_url or "", quote=True)
    return HTMLResponse(
        f"""
<h1>{title}</h1>
<p>Artist: {artist}</p>
<img src="{image}" />
<p><strong>Metadata and image uploaded to your Google Drive folder!</strong></p>
"""
    )


async def _handle_callback(state: GatewayState, code: Optional[str]) -> Response:
    try:
        await state.oauth.exchange_code(code, state.session)
    except AuthExchangeError:
        return _page("Authentication failed. Please try again.", 500)
    return _page("Authenticated! Go back to the original homepage.", 200)


async def _handle_search(state: GatewayState, keyword: Optional[str]) -> Response:
    credential = state.session.credential
    if credential is None:
        return _page('Please authenticate first: <a href="/auth">Login</a>', 401)

    keyword = (keyword or "").strip()
    if not keyword:
        return _page("Please enter a search keyword.", 400)

    # Step 1: find an artwork matching the keyword
    artwork = await state.finder.find(keyword)
    if artwork is NotFound:
        return _page("No results found.", 404)

    # Step 2: make sure the destination folder exists
    try:
        folder = await state.folders.resolve(credential)
    except HttpClientError as e:
        logger.error(f"Folder resolution failed: {e}")
        return _page("Failed to ensure folder creation.", 500)

    # Step 3: upload the image and its summary
    try:
        await state.uploads.upload(artwork, folder, credential)
    except UploadError as e:
        logger.error(f"Upload workflow failed: {e}")
        return _page("Failed to upload to Google Drive.", 500)

    return _artwork_page(artwork)


async def _serialized(state: GatewayState, handler: Callable[[], Awaitable[Response]]) -> Response:
    try:
        return await state.serializer.admit(handler)
    except WorkflowTimeoutError:
        return _page("The request timed out. Please try again.", 500)
    except Exception as exc:  # noqa: BLE001
        logger.exception(f"Unhandled error while processing request: {exc}")
        return _page("Internal server error.", 500)


def create_app(
    config: Optional[GatewayConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    cfg = config or GatewayConfig()

    http = HttpJsonClient(
        timeout=cfg.request_timeout,
        force_ipv4=cfg.force_ipv4,
        transport=transport,
    )
    state = GatewayState(
        config=cfg,
        serializer=RequestSerializer(workflow_timeout=cfg.workflow_timeout),
        session=GatewaySession(),
        http=http,
        oauth=OAuthTokenManager(
            http,
            client_id=cfg.client_id,
            client_secret=cfg.client_secret,
            redirect_uri=cfg.redirect_uri,
            scope=cfg.scope,
            authorization_base_url=cfg.authorization_base_url,
            token_url=cfg.token_url,
        ),
        finder=ArtworkFinder(http, host=cfg.collection_host),
        folders=FolderResolver(
            http,
            FolderStore(cfg.folder_store_path),
            folder_name=cfg.folder_name,
            host=cfg.drive_host,
        ),
        uploads=UploadWorkflow(http, MultipartEncoder(), host=cfg.drive_host),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # noqa: ANN001
        state.folders.store.path = state.config.resolved_folder_store()
        await state.serializer.start()
        logger.info(f"Gateway ready, folder id cache at {state.folders.store.path}")
        try:
            yield
        finally:
            await state.serializer.stop()
            state.session.clear()
            await state.http.close()

    app = FastAPI(title="MET Drive Gateway", version="0.1.0", lifespan=lifespan)
    app.state.gateway = state

    def get_state() -> GatewayState:
        return state

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # noqa: ANN001
        logger.info(f"New request received for {request.url.path}")
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def not_found(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code in (404, 405):
            return PlainTextResponse("Not found", status_code=404)
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    @app.get("/", response_class=HTMLResponse)
    async def homepage(state: GatewayState = Depends(get_state)) -> Response:
        async def handler() -> Response:
            return HTMLResponse(HOME_PAGE)

        return await _serialized(state, handler)

    @app.get("/auth")
    async def auth(state: GatewayState = Depends(get_state)) -> Response:
        async def handler() -> Response:
            return RedirectResponse(state.oauth.build_authorization_url(), status_code=302)

        return await _serialized(state, handler)

    @app.get("/oauth2callback")
    async def oauth2callback(
        code: Optional[str] = None,
        state: GatewayState = Depends(get_state),
    ) -> Response:
        return await _serialized(state, lambda: _handle_callback(state, code))

    @app.post("/search")
    async def search(
        keyword: Optional[str] = Form(None),
        state: GatewayState = Depends(get_state),
    ) -> Response:
        return await _serialized(state, lambda: _handle_search(state, keyword))

    @app.get("/health", response_model=HealthResponse)
    async def health_check(state: GatewayState = Depends(get_state)) -> JSONResponse:
        serializer = state.serializer
        response = HealthResponse(
            status="healthy" if serializer.running else "unhealthy",
            timestamp=datetime.now(timezone.utc),
            queue=QueueStatus(
                running=serializer.running,
                active=serializer.active,
                pending=serializer.pending,
                completed=serializer.completed,
                workflow_timeout=serializer.workflow_timeout,
            ),
            authenticated=state.session.is_authenticated,
            folder_cached=await state.folders.store.read() is not None,
            folder_store=str(state.config.resolved_folder_store()),
        )
        # 503 once the worker has stopped
        status_code = 200 if serializer.running else 503
        return JSONResponse(content=response.model_dump(mode="json"), status_code=status_code)

    return app
