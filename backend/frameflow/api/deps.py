from functools import lru_cache

from fastapi import Depends, HTTPException
from starlette import status

from frameflow.core.config import Settings, get_settings
from frameflow.model.board import Shot
from frameflow.services.document_import import DocumentImporter
from frameflow.services.engine import ContinuityEngine
from frameflow.services.gemini import GeminiGateway
from frameflow.services.store import BoardStore, ShotNotFound


@lru_cache
def get_store() -> BoardStore:
    settings = get_settings()
    store = BoardStore(has_api_key=settings.has_api_key())
    if settings.SEED_DEMO_SHOTS:
        store.seed_demo_shots()
    return store


@lru_cache
def get_gateway() -> GeminiGateway:
    return GeminiGateway(get_settings())


def get_engine(
    store: BoardStore = Depends(get_store),
    gateway: GeminiGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> ContinuityEngine:
    return ContinuityEngine(store, gateway, settings)


def get_importer(
    store: BoardStore = Depends(get_store),
    gateway: GeminiGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> DocumentImporter:
    return DocumentImporter(store, gateway, language=settings.EXTRACTION_LANGUAGE)


def require_shot(store: BoardStore, shot_id: str) -> Shot:
    try:
        return store.get_shot(shot_id)
    except ShotNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Shot not found: {shot_id}")
