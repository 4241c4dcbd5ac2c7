"""
API Module - REST interface for story clients.

Exposes the engine over HTTP. A client:
1. Registers (or picks) a story bundle
2. Creates a play session with a character
3. Selects actions and traverses exits turn by turn
4. Saves and resumes sessions through named slots
"""

from .schemas import (
    # Requests
    CreateSessionRequest,
    LoadRequest,
    RegisterBundleRequest,
    SaveRequest,
    SelectActionRequest,
    TraverseExitRequest,
    # Responses
    BundleListResponse,
    BundleResponse,
    ErrorResponse,
    GameStateResponse,
    SceneResponse,
    SessionResponse,
    TurnResponse,
    # Shared
    BundleInfo,
    CharacterInput,
    ChoiceInfo,
    ErrorCode,
)
from .service import APIError, APIService

__all__ = [
    # Requests
    "CreateSessionRequest",
    "LoadRequest",
    "RegisterBundleRequest",
    "SaveRequest",
    "SelectActionRequest",
    "TraverseExitRequest",
    # Responses
    "BundleListResponse",
    "BundleResponse",
    "ErrorResponse",
    "GameStateResponse",
    "SceneResponse",
    "SessionResponse",
    "TurnResponse",
    # Shared
    "BundleInfo",
    "CharacterInput",
    "ChoiceInfo",
    "ErrorCode",
    # Service
    "APIError",
    "APIService",
]
