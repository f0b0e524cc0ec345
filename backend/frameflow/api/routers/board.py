from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from frameflow.api.deps import get_store, require_shot
from frameflow.api.schemas.board import ApiKeyReq, CreateShotReq, UpdateShotReq
from frameflow.core.logger import get_logger, log_event
from frameflow.model.board import AppState, Shot
from frameflow.services.store import BoardStore

router = APIRouter()
_logger = get_logger("api")


@router.get("/state", response_model=AppState)
def get_state(store: BoardStore = Depends(get_store)):
    return store.snapshot()


@router.post("/session/api-key", response_model=AppState)
def set_api_key(payload: ApiKeyReq, store: BoardStore = Depends(get_store)):
    # the key itself comes from GEMINI_API_KEY; this only records that one was selected
    store.set_api_key(payload.configured)
    log_event(_logger, "API_KEY_FLAG", configured=payload.configured)
    return store.snapshot()


@router.post("/shots", response_model=Shot, status_code=status.HTTP_201_CREATED)
def create_shot(payload: CreateShotReq, store: BoardStore = Depends(get_store)):
    shot = store.create_shot(payload.description, payload.visual_reference)
    log_event(_logger, "SHOT_CREATED", shot=shot.id, index=shot.index)
    return shot


@router.patch("/shots/{shot_id}", response_model=Shot)
def update_shot(shot_id: str, payload: UpdateShotReq, store: BoardStore = Depends(get_store)):
    require_shot(store, shot_id)
    if payload.description is None and payload.visual_reference is None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Nothing to update.")
    return store.update_shot_details(
        shot_id,
        description=payload.description,
        visual_reference=payload.visual_reference,
    )
