"""
Pydantic Schemas for API - request/response models for OpenAPI.

These models define the exact contract between a client (web or
mobile front end) and the engine.

Error Codes:
- BUNDLE_NOT_FOUND: Story bundle id is not registered
- INVALID_BUNDLE: Bundle failed to parse or validate
- SESSION_NOT_FOUND: Session does not exist or has ended
- ACTION_UNAVAILABLE: Action unknown or currently hidden
- EXIT_UNAVAILABLE: Exit unknown or currently hidden
- SAVE_NOT_FOUND: Save slot does not exist
- INVALID_SAVE: Save slot name or content is invalid
"""

from enum import Enum
from typing import Any, Optional, Union
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    ACTIVE = "active"
    ENDED = "ended"
    ABANDONED = "abandoned"


class ErrorCode(str, Enum):
    """Structured error codes."""
    BUNDLE_NOT_FOUND = "BUNDLE_NOT_FOUND"
    INVALID_BUNDLE = "INVALID_BUNDLE"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    ACTION_UNAVAILABLE = "ACTION_UNAVAILABLE"
    EXIT_UNAVAILABLE = "EXIT_UNAVAILABLE"
    INVALID_CHOICE = "INVALID_CHOICE"
    SESSION_ENDED = "SESSION_ENDED"
    SAVE_NOT_FOUND = "SAVE_NOT_FOUND"
    INVALID_SAVE = "INVALID_SAVE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class ValidationIssueInfo(BaseModel):
    """A bundle validation issue."""
    path: str
    message: str
    severity: str = Field(description="error or warning")


class BundleInfo(BaseModel):
    """Summary of a registered story bundle."""
    bundle_id: str
    name: str
    version: str
    description: Optional[str] = None
    start_scene: str
    scene_count: int
    rule_modules: list[str] = Field(default_factory=list)


class CharacterInput(BaseModel):
    """The player character for a new session."""
    name: str = Field("Adventurer", min_length=1)
    stats: dict[str, Union[int, float]] = Field(default_factory=dict, description="e.g. {\"str\": 12, \"hp\": 10}")
    race_id: Optional[str] = None
    faction_ids: list[str] = Field(default_factory=list)


class ChoiceInfo(BaseModel):
    """An action or exit the player can pick right now."""
    ref: str = Field(description="action:<id> or exit:<index>")
    label: str
    kind: str = Field(description="action or exit")


class SceneResponse(BaseModel):
    """The current scene as the player sees it."""
    session_id: str
    scene_id: str
    title: str
    text: str
    location_id: Optional[str] = None
    choices: list[ChoiceInfo] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# Requests
# =============================================================================

class RegisterBundleRequest(BaseModel):
    """A story bundle document (the same JSON a bundle file holds)."""
    bundle: dict[str, Any]


class CreateSessionRequest(BaseModel):
    """Request to start a new play session."""
    bundle_id: str = Field(..., description="Registered story bundle id")
    character: CharacterInput = Field(default_factory=CharacterInput)
    seed: Optional[int] = Field(None, description="Seed for reproducible dice")


class SelectActionRequest(BaseModel):
    action_id: str


class TraverseExitRequest(BaseModel):
    exit_ref: Union[int, str] = Field(..., description="Exit index, exit id, or target scene id")


class SaveRequest(BaseModel):
    slot: str = Field(..., pattern=r"^[A-Za-z0-9_-]{1,64}$")


class LoadRequest(BaseModel):
    slot: str = Field(..., pattern=r"^[A-Za-z0-9_-]{1,64}$")
    seed: Optional[int] = None


# =============================================================================
# Responses
# =============================================================================

class ErrorResponse(BaseModel):
    """Standardized error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class BundleResponse(BaseModel):
    success: bool
    bundle: Optional[BundleInfo] = None
    issues: list[ValidationIssueInfo] = Field(default_factory=list)


class ValidateBundleResponse(BaseModel):
    valid: bool
    issues: list[ValidationIssueInfo] = Field(default_factory=list)


class BundleListResponse(BaseModel):
    bundles: list[BundleInfo]
    count: int


class SessionResponse(BaseModel):
    """Session status with the current scene."""
    session_id: str
    bundle_id: str
    status: SessionStatus
    turn_number: int = 0
    seed: int
    scene: SceneResponse
    api_version: str = "v1"


class TurnResponse(BaseModel):
    """Result of an action or exit."""
    session_id: str
    success: bool
    turn_number: int
    narrative: list[str] = Field(default_factory=list)
    outcomes: list[str] = Field(default_factory=list, description="success / failure / neutral per rule hook")
    scene: SceneResponse
    api_version: str = "v1"


class GameStateResponse(BaseModel):
    """The raw save state of a session."""
    session_id: str
    state: dict[str, Any]


class SessionListResponse(BaseModel):
    """Response listing active sessions."""
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    """Response after ending a session."""
    success: bool
    session_id: str


class SaveResponse(BaseModel):
    slot: str
    story_bundle_id: str
    scene_id: str
    saved_at: float


class SaveListResponse(BaseModel):
    saves: list[SaveResponse]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    environment: str
