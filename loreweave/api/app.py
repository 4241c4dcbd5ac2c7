"""
FastAPI Application - REST API for story clients.

Endpoints:
    GET    /api/v1/bundles                         List registered story bundles
    POST   /api/v1/bundles                         Register a story bundle
    POST   /api/v1/bundles/validate                Validate without registering
    POST   /api/v1/sessions                        Create play session
    GET    /api/v1/sessions                        List active sessions
    GET    /api/v1/sessions/{id}                   Get session status
    DELETE /api/v1/sessions/{id}                   End session
    GET    /api/v1/sessions/{id}/scene             Describe current scene
    GET    /api/v1/sessions/{id}/state             Raw save state
    POST   /api/v1/sessions/{id}/actions           Select an action
    POST   /api/v1/sessions/{id}/exits             Traverse an exit
    POST   /api/v1/sessions/{id}/save              Save to a slot
    GET    /api/v1/saves                           List save slots
    POST   /api/v1/saves/load                      Resume a session from a slot

All requests and responses are JSON with explicit Pydantic schemas.
"""

from typing import Annotated
import os

from .. import __version__

# Environment configuration
LOREWEAVE_ENV = os.getenv("LOREWEAVE_ENV", "development")
LOREWEAVE_SAVE_DIR = os.getenv("LOREWEAVE_SAVE_DIR", None)
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    from fastapi import FastAPI, Query, Request
    from fastapi.middleware.cors import CORSMiddleware
    from fastapi.responses import JSONResponse

    from ..session import SaveStore
    from .service import APIError, APIService
    from .schemas import (
        # Request models
        CreateSessionRequest,
        LoadRequest,
        RegisterBundleRequest,
        SaveRequest,
        SelectActionRequest,
        TraverseExitRequest,
        # Response models
        BundleListResponse,
        BundleResponse,
        EndSessionResponse,
        ErrorResponse,
        GameStateResponse,
        HealthResponse,
        SaveListResponse,
        SaveResponse,
        SceneResponse,
        SessionListResponse,
        SessionResponse,
        TurnResponse,
        ValidateBundleResponse,
        # Enums
        ErrorCode,
    )

    app = FastAPI(
        title="Loreweave API",
        description="""
Narrative State Engine - play data-driven story bundles over HTTP.

## Turn Flow

1. `POST /sessions` with a `bundle_id` and a character
2. Read the scene's `choices`
3. `POST /actions` with an `action_id`, or `POST /exits` with an `exit_ref`
4. Repeat; `POST /save` at any time

## Error Codes

| Code | Description |
|------|-------------|
| `BUNDLE_NOT_FOUND` | Story bundle id is not registered |
| `INVALID_BUNDLE` | Bundle failed to parse or validate |
| `SESSION_NOT_FOUND` | Session does not exist |
| `ACTION_UNAVAILABLE` | Action unknown or hidden by its condition |
| `EXIT_UNAVAILABLE` | Exit unknown or hidden by its condition |
| `SAVE_NOT_FOUND` | Save slot does not exist |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Service instance
    api_service = service or APIService(
        save_store=SaveStore(LOREWEAVE_SAVE_DIR) if LOREWEAVE_SAVE_DIR else None,
    )
    app.state.service = api_service

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: dict | None = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(APIError)
    async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
        return make_error_response(exc.error_code, exc.message, exc.status_code, exc.details)

    error_responses = {
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Not found"},
    }

    # =========================================================================
    # Bundle Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/bundles",
        response_model=BundleListResponse,
        tags=["Bundles"],
        summary="List registered story bundles",
    )
    async def list_bundles() -> BundleListResponse:
        return api_service.list_bundles()

    @app.post(
        "/api/v1/bundles",
        response_model=BundleResponse,
        responses={422: {"model": ErrorResponse, "description": "Bundle failed validation"}},
        tags=["Bundles"],
        summary="Register a story bundle",
    )
    async def register_bundle(request: RegisterBundleRequest) -> BundleResponse:
        """
        Register a story bundle document.

        Registering a bundle with an existing id replaces it for new sessions.
        """
        return api_service.register_bundle(request.bundle)

    @app.post(
        "/api/v1/bundles/validate",
        response_model=ValidateBundleResponse,
        tags=["Bundles"],
        summary="Validate a story bundle without registering it",
    )
    async def validate_bundle(request: RegisterBundleRequest) -> ValidateBundleResponse:
        return api_service.validate_bundle(request.bundle)

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Create a new play session",
    )
    async def create_session(request: CreateSessionRequest) -> SessionResponse:
        """
        Create a new play session.

        Use `bundle_id=rookhaven` for the bundled demo story.
        """
        return api_service.create_session(request)

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        return api_service.list_sessions()

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Get session status",
    )
    async def get_session(session_id: str) -> SessionResponse:
        return api_service.get_session(session_id)

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a play session",
    )
    async def end_session(
        session_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "user_ended",
    ) -> EndSessionResponse:
        return api_service.end_session(session_id, reason)

    @app.get(
        "/api/v1/sessions/{session_id}/scene",
        response_model=SceneResponse,
        responses=error_responses,
        tags=["Play"],
        summary="Describe the current scene",
    )
    async def get_scene(session_id: str) -> SceneResponse:
        return api_service.get_scene(session_id)

    @app.get(
        "/api/v1/sessions/{session_id}/state",
        response_model=GameStateResponse,
        responses=error_responses,
        tags=["Play"],
        summary="Get the raw save state",
    )
    async def get_state(session_id: str) -> GameStateResponse:
        return api_service.get_state(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/actions",
        response_model=TurnResponse,
        responses={**error_responses, 409: {"model": ErrorResponse, "description": "Action unavailable"}},
        tags=["Play"],
        summary="Select an action in the current scene",
    )
    async def select_action(session_id: str, request: SelectActionRequest) -> TurnResponse:
        return api_service.select_action(session_id, request)

    @app.post(
        "/api/v1/sessions/{session_id}/exits",
        response_model=TurnResponse,
        responses={**error_responses, 409: {"model": ErrorResponse, "description": "Exit unavailable"}},
        tags=["Play"],
        summary="Leave the current scene through an exit",
    )
    async def traverse_exit(session_id: str, request: TraverseExitRequest) -> TurnResponse:
        return api_service.traverse_exit(session_id, request)

    # =========================================================================
    # Save Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/save",
        response_model=SaveResponse,
        responses=error_responses,
        tags=["Saves"],
        summary="Save the session to a slot",
    )
    async def save_session(session_id: str, request: SaveRequest) -> SaveResponse:
        return api_service.save(session_id, request)

    @app.get(
        "/api/v1/saves",
        response_model=SaveListResponse,
        tags=["Saves"],
        summary="List save slots",
    )
    async def list_saves() -> SaveListResponse:
        return api_service.list_saves()

    @app.post(
        "/api/v1/saves/load",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Saves"],
        summary="Resume a session from a save slot",
    )
    async def load_save(request: LoadRequest) -> SessionResponse:
        return api_service.load(request)

    # =========================================================================
    # System
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="loreweave",
            version=__version__,
            environment=LOREWEAVE_ENV,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Loreweave API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn loreweave.api.app:app
app = create_app()
