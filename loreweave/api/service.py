"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine calls
2. Manages bundles and sessions
3. Persists save slots
4. Formats responses for clients

This layer is framework-agnostic; errors are raised as APIError and
mapped to HTTP responses by the app.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import logging

from ..bundle.models import StoryBundle
from ..bundle.validation import validate_bundle
from ..engine_core.serialization import state_to_dict
from ..engine_core.state import Character
from ..errors import BundleError, BundleFormatError, LoreweaveError, SaveLoadError, ValidationIssue
from ..session import PlayLoop, SaveStore, Session, SessionManager, TurnResult, UnknownBundle
from .schemas import (
    BundleInfo,
    BundleListResponse,
    BundleResponse,
    ChoiceInfo,
    CreateSessionRequest,
    EndSessionResponse,
    ErrorCode,
    GameStateResponse,
    LoadRequest,
    SaveListResponse,
    SaveRequest,
    SaveResponse,
    SceneResponse,
    SelectActionRequest,
    SessionListResponse,
    SessionResponse,
    SessionStatus,
    TraverseExitRequest,
    TurnResponse,
    ValidateBundleResponse,
    ValidationIssueInfo,
)

logger = logging.getLogger(__name__)


class APIError(Exception):
    """An error with a structured code, raised to the HTTP layer."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()

        # Start playing the bundled demo
        session = service.create_session(CreateSessionRequest(bundle_id="rookhaven"))

        # Take a turn
        turn = service.select_action(session.session_id, SelectActionRequest(action_id="search_fountain"))
    """
    session_manager: SessionManager = field(default_factory=SessionManager)
    save_store: SaveStore | None = None
    load_builtin_stories: bool = True

    # Play loops per session
    _loops: dict[str, PlayLoop] = field(default_factory=dict)

    def __post_init__(self):
        if self.load_builtin_stories:
            from ..stories import STORIES, create_rookhaven_lore
            self.session_manager.register_lore(create_rookhaven_lore())
            for factory in STORIES.values():
                self.session_manager.register_bundle(factory())

    # =========================================================================
    # Bundles
    # =========================================================================

    def list_bundles(self) -> BundleListResponse:
        bundles = [_bundle_info(b) for b in self.session_manager.list_bundles()]
        return BundleListResponse(bundles=bundles, count=len(bundles))

    def validate_bundle(self, document: dict[str, Any]) -> ValidateBundleResponse:
        bundle, issues = self._check_document(document)
        return ValidateBundleResponse(
            valid=bundle is not None and not any(i.is_error for i in issues),
            issues=[_issue_info(i) for i in issues],
        )

    def register_bundle(self, document: dict[str, Any]) -> BundleResponse:
        bundle, issues = self._check_document(document)
        if bundle is None or any(i.is_error for i in issues):
            raise APIError(
                ErrorCode.INVALID_BUNDLE,
                "Story bundle failed validation",
                status_code=422,
                details={"issues": [_issue_info(i).model_dump() for i in issues]},
            )
        try:
            self.session_manager.register_bundle(bundle)
        except BundleError as e:
            raise APIError(ErrorCode.INVALID_BUNDLE, str(e), status_code=422)
        return BundleResponse(success=True, bundle=_bundle_info(bundle), issues=[_issue_info(i) for i in issues])

    def _check_document(self, document: dict[str, Any]) -> tuple[StoryBundle | None, list[ValidationIssue]]:
        try:
            bundle = StoryBundle.from_dict(document)
        except BundleFormatError as e:
            return None, [ValidationIssue(e.path, e.message)]
        result = validate_bundle(bundle, self.session_manager.catalog)
        return bundle, result.issues

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        character = Character(
            name=request.character.name,
            stats=dict(request.character.stats),
            race_id=request.character.race_id,
            faction_ids=list(request.character.faction_ids),
        )
        try:
            session = self.session_manager.create_session(request.bundle_id, character, seed=request.seed)
        except UnknownBundle as e:
            raise APIError(ErrorCode.BUNDLE_NOT_FOUND, str(e), status_code=404)
        return self._session_response(session)

    def get_session(self, session_id: str) -> SessionResponse:
        return self._session_response(self._get_session(session_id))

    def end_session(self, session_id: str, reason: str = "user_ended") -> EndSessionResponse:
        self._loops.pop(session_id, None)
        success = self.session_manager.end_session(session_id, reason)
        return EndSessionResponse(success=success, session_id=session_id)

    def list_sessions(self) -> SessionListResponse:
        sessions = self.session_manager.list_active_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    def get_scene(self, session_id: str) -> SceneResponse:
        session = self._get_session(session_id)
        return self._scene_response(session, self._get_loop(session).look())

    def get_state(self, session_id: str) -> GameStateResponse:
        session = self._get_session(session_id)
        return GameStateResponse(session_id=session_id, state=state_to_dict(session.game_state))

    # =========================================================================
    # Turns
    # =========================================================================

    def select_action(self, session_id: str, request: SelectActionRequest) -> TurnResponse:
        session = self._get_session(session_id)
        return self._turn_response(session, self._get_loop(session).choose_action(request.action_id))

    def traverse_exit(self, session_id: str, request: TraverseExitRequest) -> TurnResponse:
        session = self._get_session(session_id)
        return self._turn_response(session, self._get_loop(session).take_exit(request.exit_ref))

    # =========================================================================
    # Saves
    # =========================================================================

    def save(self, session_id: str, request: SaveRequest) -> SaveResponse:
        session = self._get_session(session_id)
        try:
            meta = self._get_save_store().save(request.slot, session.game_state)
        except SaveLoadError as e:
            raise APIError(ErrorCode.INVALID_SAVE, str(e))
        return SaveResponse(
            slot=meta.slot, story_bundle_id=meta.story_bundle_id, scene_id=meta.scene_id, saved_at=meta.saved_at,
        )

    def load(self, request: LoadRequest) -> SessionResponse:
        store = self._get_save_store()
        if not store.exists(request.slot):
            raise APIError(ErrorCode.SAVE_NOT_FOUND, f"Save slot '{request.slot}' does not exist", status_code=404)
        try:
            state = store.load(request.slot)
            session = self.session_manager.resume_session(state, seed=request.seed)
        except SaveLoadError as e:
            raise APIError(ErrorCode.INVALID_SAVE, str(e))
        except UnknownBundle as e:
            raise APIError(ErrorCode.BUNDLE_NOT_FOUND, str(e), status_code=404)
        except LoreweaveError as e:
            raise APIError(ErrorCode.INVALID_SAVE, str(e))
        return self._session_response(session)

    def list_saves(self) -> SaveListResponse:
        saves = [
            SaveResponse(slot=s.slot, story_bundle_id=s.story_bundle_id, scene_id=s.scene_id, saved_at=s.saved_at)
            for s in self._get_save_store().list_slots()
        ]
        return SaveListResponse(saves=saves, count=len(saves))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_session(self, session_id: str) -> Session:
        session = self.session_manager.get_session(session_id)
        if session is None:
            raise APIError(ErrorCode.SESSION_NOT_FOUND, f"Session {session_id} not found", status_code=404)
        return session

    def _get_loop(self, session: Session) -> PlayLoop:
        loop = self._loops.get(session.session_id)
        if loop is None:
            loop = self._loops[session.session_id] = PlayLoop(session)
        return loop

    def _get_save_store(self) -> SaveStore:
        if self.save_store is None:
            self.save_store = SaveStore()
        return self.save_store

    def _session_response(self, session: Session) -> SessionResponse:
        return SessionResponse(
            session_id=session.session_id,
            bundle_id=session.bundle.id,
            status=SessionStatus(session.state.value),
            turn_number=session.turn_number,
            seed=session.seed,
            scene=self._scene_response(session, self._get_loop(session).look()),
        )

    def _scene_response(self, session: Session, turn: TurnResult) -> SceneResponse:
        return SceneResponse(
            session_id=session.session_id,
            scene_id=turn.scene_id,
            title=turn.title,
            text=turn.text,
            location_id=session.game_state.current_location_id,
            choices=[ChoiceInfo(ref=c.ref, label=c.label, kind=c.kind) for c in turn.choices],
            warnings=turn.warnings,
        )

    def _turn_response(self, session: Session, turn: TurnResult) -> TurnResponse:
        if not turn.success:
            try:
                code = ErrorCode(turn.error_code)
            except ValueError:
                code = ErrorCode.INTERNAL_ERROR
            logger.info("Session %s rejected a choice: %s", session.session_id, "; ".join(turn.errors))
            raise APIError(code, "; ".join(turn.errors), status_code=409, details={"scene_id": turn.scene_id})
        return TurnResponse(
            session_id=session.session_id,
            success=True,
            turn_number=session.turn_number,
            narrative=turn.narrative,
            outcomes=turn.outcomes,
            scene=self._scene_response(session, turn),
        )


def _bundle_info(bundle: StoryBundle) -> BundleInfo:
    return BundleInfo(
        bundle_id=bundle.id,
        name=bundle.name,
        version=bundle.version,
        description=bundle.description,
        start_scene=bundle.story.start_scene,
        scene_count=len(bundle.story.scenes),
        rule_modules=[ref.id for ref in bundle.rule_modules],
    )


def _issue_info(issue: ValidationIssue) -> ValidationIssueInfo:
    return ValidationIssueInfo(path=issue.path, message=issue.message, severity=issue.severity.value)
