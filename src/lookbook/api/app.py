"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from lookbook.api.schemas import (
    ChatOut,
    ChatRequest,
    FaceAnalysisRequest,
    HairstyleRequest,
    LookIn,
    LookOut,
    SaveOut,
    SessionOut,
    TryOnRequest,
)
from lookbook.app_logging import configure_logging
from lookbook.containers import AppContainer
from lookbook.domain.errors import (
    AuthUnavailableError,
    CapacityExceededError,
    GenerationFailedError,
    LookbookError,
    NoActiveSessionError,
    RemoteError,
    StorageUnavailableError,
)
from lookbook.domain.identity import Authenticated, IdentityMode
from lookbook.domain.looks import EncodedImage, Look
from lookbook.domain.styling import AnalysisResponse
from lookbook.services.looks import SaveResult

_ERROR_STATUS: list[tuple[type[LookbookError], int]] = [
    (NoActiveSessionError, status.HTTP_409_CONFLICT),
    (CapacityExceededError, status.HTTP_413_CONTENT_TOO_LARGE),
    (StorageUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (AuthUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (RemoteError, status.HTTP_502_BAD_GATEWAY),
    (GenerationFailedError, status.HTTP_502_BAD_GATEWAY),
]


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        state_container.look_repository.bind(state_container.identity_monitor)
        await state_container.look_repository.settle()
        yield
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(LookbookError)
    async def lookbook_error_handler(
        _request: Request, exc: LookbookError
    ) -> JSONResponse:
        status_code = _status_for(exc)
        logger.warning("Request failed with %s: %s", type(exc).__name__, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/session")
    async def get_session(request: Request) -> SessionOut:
        """Return the current identity mode."""
        state_container: AppContainer = request.app.state.container
        await state_container.look_repository.settle()
        return _session_out(state_container.identity_monitor.current_mode())

    @app.post("/session/guest")
    async def continue_as_guest(request: Request) -> SessionOut:
        """Start an anonymous session, or local guest mode if unavailable."""
        state_container: AppContainer = request.app.state.container
        mode = state_container.identity_monitor.continue_as_guest()
        await state_container.look_repository.settle()
        return _session_out(mode)

    @app.post("/session/sign-out")
    async def sign_out(request: Request) -> SessionOut:
        """Sign out, or leave guest mode."""
        state_container: AppContainer = request.app.state.container
        state_container.identity_monitor.sign_out()
        await state_container.look_repository.settle()
        return _session_out(state_container.identity_monitor.current_mode())

    @app.get("/looks")
    async def list_looks(request: Request) -> list[LookOut]:
        """Return saved looks, newest first."""
        state_container: AppContainer = request.app.state.container
        await state_container.look_repository.settle()
        return [_look_out(look) for look in state_container.look_repository.list_looks()]

    @app.post("/looks")
    async def save_look(payload: LookIn, request: Request) -> SaveOut:
        """Save a look produced by the UI."""
        state_container: AppContainer = request.app.state.container
        look = Look(
            id=payload.id or str(uuid4()),
            kind=payload.kind,
            label=payload.label,
            created_at=payload.created_at or datetime.now(tz=UTC),
            payload=_decode_image(payload.image),
        )
        return await _save(state_container, look)

    @app.post("/looks/hairstyle")
    async def preview_hairstyle(payload: HairstyleRequest, request: Request) -> SaveOut:
        """Generate a hairstyle preview and save it."""
        state_container: AppContainer = request.app.state.container
        look = await state_container.generation_service.preview_hairstyle(
            _decode_image(payload.selfie), payload.style_name
        )
        return await _save(state_container, look)

    @app.post("/looks/try-on")
    async def try_on(payload: TryOnRequest, request: Request) -> SaveOut:
        """Generate a clothing try-on and save it."""
        state_container: AppContainer = request.app.state.container
        look = await state_container.generation_service.try_on(
            _decode_image(payload.person), _decode_image(payload.garment)
        )
        return await _save(state_container, look)

    @app.delete("/looks/{look_id}")
    async def delete_look(look_id: str, request: Request) -> dict[str, str]:
        """Delete a saved look."""
        state_container: AppContainer = request.app.state.container
        await state_container.look_repository.settle()
        await state_container.look_repository.delete(look_id)
        return {"status": "ok"}

    @app.post("/analysis/face")
    async def analyze_face(
        payload: FaceAnalysisRequest, request: Request
    ) -> AnalysisResponse:
        """Analyze a selfie and recommend hairstyles."""
        state_container: AppContainer = request.app.state.container
        return await state_container.generation_service.analyze_face(
            _decode_image(payload.selfie)
        )

    @app.post("/chat")
    async def chat(payload: ChatRequest, request: Request) -> ChatOut:
        """Answer a styling question."""
        state_container: AppContainer = request.app.state.container
        reply = await state_container.generation_service.chat_reply(
            payload.history, payload.message
        )
        return ChatOut(reply=reply)

    return app


async def _save(container: AppContainer, look: Look) -> SaveOut:
    await container.look_repository.settle()
    result: SaveResult = await container.look_repository.save(look)
    warning = None
    if result.remote_error is not None:
        warning = f"Cloud save failed, saved to device instead: {result.remote_error}"
    return SaveOut(look=_look_out(look), backend=result.backend, warning=warning)


def _decode_image(data_url: str) -> EncodedImage:
    try:
        return EncodedImage.from_data_url(data_url)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc


def _look_out(look: Look) -> LookOut:
    image_url = look.image_url
    if image_url is None and look.payload is not None:
        image_url = look.payload.to_data_url()
    return LookOut(
        id=look.id,
        kind=look.kind,
        label=look.label,
        created_at=look.created_at,
        image_url=image_url,
    )


def _session_out(mode: IdentityMode) -> SessionOut:
    if isinstance(mode, Authenticated):
        return SessionOut(
            mode=mode.name, user_id=mode.user_id, is_anonymous=mode.is_anonymous
        )
    return SessionOut(mode=mode.name)


def _status_for(exc: LookbookError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR
