from typing import Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from frameflow.api.deps import get_engine, get_store, require_shot
from frameflow.api.schemas.board import EditFrameReq, OperationResp
from frameflow.model.board import Frame, Shot
from frameflow.services.engine import ContinuityEngine
from frameflow.services.store import BoardStore
from frameflow.utils.text import safe_text

router = APIRouter()


# ---- Local helpers -----------------------------------------------------------
def _require_frame(shot: Shot, frame_id: str) -> Frame:
    frame = shot.frame(frame_id)
    if frame is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Frame not found: {shot.id}/{frame_id}")
    return frame


def _reject_busy(frames: Iterable[Optional[Frame]]) -> None:
    # the store does not serialise work per frame; callers must
    busy = [f.id for f in frames if f is not None and f.is_busy]
    if busy:
        raise HTTPException(status.HTTP_409_CONFLICT, f"Frame(s) still in progress: {', '.join(busy)}")


def _respond(step: str, outcome, store: BoardStore, shot_id: str) -> OperationResp:
    return OperationResp(step=step, outcome=outcome, shot=store.get_shot(shot_id))


# ---- Routes -------------------------------------------------------------------
@router.post("/shots/{shot_id}/generate-frames", response_model=OperationResp)
async def generate_frames(
    shot_id: str,
    store: BoardStore = Depends(get_store),
    engine: ContinuityEngine = Depends(get_engine),
):
    shot = require_shot(store, shot_id)
    _reject_busy([shot.start_frame, shot.end_frame])
    outcome = await engine.generate_endpoint_frames(shot_id)
    return _respond("frames_done", outcome, store, shot_id)


@router.post("/shots/{shot_id}/generate-transitions", response_model=OperationResp)
async def generate_transitions(
    shot_id: str,
    store: BoardStore = Depends(get_store),
    engine: ContinuityEngine = Depends(get_engine),
):
    shot = require_shot(store, shot_id)
    _reject_busy(shot.keyframes)
    outcome = await engine.generate_transition_frames(shot_id)
    return _respond("transitions_done", outcome, store, shot_id)


@router.post("/shots/{shot_id}/frames/{frame_id}/animate", response_model=OperationResp)
async def animate_frame(
    shot_id: str,
    frame_id: str,
    store: BoardStore = Depends(get_store),
    engine: ContinuityEngine = Depends(get_engine),
):
    shot = require_shot(store, shot_id)
    _reject_busy([_require_frame(shot, frame_id)])
    outcome = await engine.animate_frame(shot_id, frame_id)
    return _respond("animate_done", outcome, store, shot_id)


@router.post("/shots/{shot_id}/frames/{frame_id}/edit", response_model=OperationResp)
async def edit_frame(
    shot_id: str,
    frame_id: str,
    payload: EditFrameReq,
    store: BoardStore = Depends(get_store),
    engine: ContinuityEngine = Depends(get_engine),
):
    if not safe_text(payload.instruction):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Missing edit instruction.")
    shot = require_shot(store, shot_id)
    _reject_busy([_require_frame(shot, frame_id)])
    outcome = await engine.edit_frame(shot_id, frame_id, payload.instruction)
    return _respond("edit_done", outcome, store, shot_id)
