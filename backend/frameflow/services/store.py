from __future__ import annotations

import uuid
from typing import Callable, Iterable, List, Optional

from frameflow.core.logger import get_logger, log_event
from frameflow.model.board import AppState, Frame, FrameRole, Shot

_logger = get_logger("store")

DEFAULT_DESCRIPTION = "Describe the new cinematic shot..."
DEFAULT_VISUAL_REFERENCE = "Minimalism and elegance."
IMPORTED_VISUAL_REFERENCE = "Inferred: matches the overall tone of the film."

DEMO_SHOTS = [
    (
        "Close-up: a high-tech glass orb pulses with a soft blue light in a dark room.",
        "Focus on transparency and light refraction.",
    ),
    (
        "Wide shot: a minimalist studio with only a thin metal desk; a large window opens onto a misty forest.",
        "Extreme negative space, atmospheric fog, brushed metal texture.",
    ),
]

_FRAME_FIELDS = {"image_url", "video_url", "prompt", "is_generating", "is_animating"}
_SHOT_TEXT_FIELDS = {"description", "visual_reference"}


# =========================================================
# Errors
# =========================================================
class BoardStoreError(Exception):
    pass


class ShotNotFound(BoardStoreError, KeyError):
    pass


class FrameNotFound(BoardStoreError, KeyError):
    pass


class KeyframeInvariantError(BoardStoreError, ValueError):
    pass


# =========================================================
# Factories
# =========================================================
def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def new_frame(role: FrameRole, frame_id: Optional[str] = None, **fields) -> Frame:
    return Frame(id=frame_id or new_id(f"{role.value.lower()}-"), role=role, **fields)


def new_shot(index: int, description: str, visual_reference: str, shot_id: Optional[str] = None) -> Shot:
    """A shot with two bare frames, START then END."""
    sid = shot_id or new_id("shot-")
    return Shot(
        id=sid,
        index=index,
        description=description,
        visual_reference=visual_reference,
        keyframes=[
            new_frame(FrameRole.START, f"{sid}a"),
            new_frame(FrameRole.END, f"{sid}b"),
        ],
    )


def check_keyframes(shot: Shot) -> None:
    roles = [f.role for f in shot.keyframes]
    if len(roles) < 2 or roles[0] != FrameRole.START or roles[-1] != FrameRole.END:
        raise KeyframeInvariantError(f"shot {shot.id}: keyframes must start with START and end with END")
    if any(r != FrameRole.MID for r in roles[1:-1]):
        raise KeyframeInvariantError(f"shot {shot.id}: only MID frames may sit between START and END")
    ids = [f.id for f in shot.keyframes]
    if len(set(ids)) != len(ids):
        raise KeyframeInvariantError(f"shot {shot.id}: duplicate frame ids")


# =========================================================
# Store
# =========================================================
class BoardStore:
    """
    Sole owner of the shot/frame records.

    Every mutation is a synchronous whole-record replace, so on one event loop
    it is atomic: no reader ever sees half an update. Readers get copies.
    """

    def __init__(self, has_api_key: bool = False):
        self._state = AppState(has_api_key=has_api_key)
        self._listeners: List[Callable[[AppState], None]] = []

    # ---- reads --------------------------------------------------------------
    def snapshot(self) -> AppState:
        return self._state.model_copy(deep=True)

    @property
    def has_api_key(self) -> bool:
        return self._state.has_api_key

    @property
    def is_global_loading(self) -> bool:
        return self._state.is_global_loading

    def shot_count(self) -> int:
        return len(self._state.shots)

    def _shot_pos(self, shot_id: str) -> int:
        for i, s in enumerate(self._state.shots):
            if s.id == shot_id:
                return i
        raise ShotNotFound(shot_id)

    def get_shot(self, shot_id: str) -> Shot:
        return self._state.shots[self._shot_pos(shot_id)].model_copy(deep=True)

    def get_frame(self, shot_id: str, frame_id: str) -> Frame:
        frame = self._state.shots[self._shot_pos(shot_id)].frame(frame_id)
        if frame is None:
            raise FrameNotFound(f"{shot_id}/{frame_id}")
        return frame.model_copy()

    def find_frame_by_role(self, shot_id: str, role: FrameRole) -> Optional[Frame]:
        frame = self._state.shots[self._shot_pos(shot_id)].frame_by_role(role)
        return frame.model_copy() if frame else None

    def previous_shot(self, shot_id: str) -> Optional[Shot]:
        """The shot before `shot_id` in continuity (sequence) order."""
        pos = self._shot_pos(shot_id)
        return self._state.shots[pos - 1].model_copy(deep=True) if pos > 0 else None

    # ---- listeners ----------------------------------------------------------
    def subscribe(self, listener: Callable[[AppState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, state: AppState) -> None:
        self._state = state
        if self._listeners:
            snap = self.snapshot()
            for listener in list(self._listeners):
                listener(snap)

    def _replace_shot(self, pos: int, shot: Shot) -> None:
        shots = list(self._state.shots)
        shots[pos] = shot
        self._commit(self._state.model_copy(update={"shots": shots}))

    # ---- mutations ----------------------------------------------------------
    def update_frame(self, shot_id: str, frame_id: str, **changes) -> Frame:
        """Replace one frame record with `changes` applied. Other frames are untouched."""
        unknown = set(changes) - _FRAME_FIELDS
        if unknown:
            raise ValueError(f"Cannot update frame fields: {', '.join(sorted(unknown))}")

        pos = self._shot_pos(shot_id)
        shot = self._state.shots[pos]
        keyframes = list(shot.keyframes)
        for i, f in enumerate(keyframes):
            if f.id == frame_id:
                updated = f.model_copy(update=changes)
                keyframes[i] = updated
                break
        else:
            raise FrameNotFound(f"{shot_id}/{frame_id}")

        self._replace_shot(pos, shot.model_copy(update={"keyframes": keyframes}))
        return updated.model_copy()

    def replace_mid_frames(self, shot_id: str, mids: Iterable[Frame]) -> Shot:
        """Drop every MID frame of the shot and put `mids` between START and END."""
        mids = list(mids)
        if any(f.role != FrameRole.MID for f in mids):
            raise KeyframeInvariantError("replacement frames must all be MID")

        pos = self._shot_pos(shot_id)
        shot = self._state.shots[pos]
        start, end = shot.keyframes[0], shot.keyframes[-1]
        updated = shot.model_copy(update={"keyframes": [start, *mids, end]})
        check_keyframes(updated)
        self._replace_shot(pos, updated)
        return updated.model_copy(deep=True)

    def append_shots(self, shots: Iterable[Shot]) -> List[Shot]:
        """Append a batch in one transition; the whole batch is validated first."""
        shots = list(shots)
        if not shots:
            return []
        seen_shots = {s.id for s in self._state.shots}
        seen_frames = {f.id for s in self._state.shots for f in s.keyframes}
        for shot in shots:
            check_keyframes(shot)
            if shot.id in seen_shots:
                raise KeyframeInvariantError(f"duplicate shot id {shot.id}")
            seen_shots.add(shot.id)
            for f in shot.keyframes:
                if f.id in seen_frames:
                    raise KeyframeInvariantError(f"duplicate frame id {f.id}")
                seen_frames.add(f.id)

        self._commit(self._state.model_copy(update={"shots": [*self._state.shots, *shots]}))
        log_event(_logger, "SHOTS_APPENDED", count=len(shots), total=len(self._state.shots))
        return [s.model_copy(deep=True) for s in shots]

    def create_shot(self, description: Optional[str] = None, visual_reference: Optional[str] = None) -> Shot:
        shot = new_shot(
            index=self.shot_count() + 1,
            description=description or DEFAULT_DESCRIPTION,
            visual_reference=visual_reference or DEFAULT_VISUAL_REFERENCE,
        )
        return self.append_shots([shot])[0]

    def update_shot_details(self, shot_id: str, **changes) -> Shot:
        unknown = set(changes) - _SHOT_TEXT_FIELDS
        if unknown:
            raise ValueError(f"Cannot update shot fields: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in changes.items() if v is not None}
        pos = self._shot_pos(shot_id)
        updated = self._state.shots[pos].model_copy(update=changes)
        self._replace_shot(pos, updated)
        return updated.model_copy(deep=True)

    def set_global_loading(self, loading: bool) -> None:
        self._commit(self._state.model_copy(update={"is_global_loading": loading}))

    def set_api_key(self, configured: bool) -> None:
        self._commit(self._state.model_copy(update={"has_api_key": configured}))

    def seed_demo_shots(self) -> List[Shot]:
        base = self.shot_count()
        return self.append_shots(
            new_shot(base + i + 1, desc, ref) for i, (desc, ref) in enumerate(DEMO_SHOTS)
        )
