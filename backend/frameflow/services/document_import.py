from __future__ import annotations

import json
import logging
from typing import List

from pydantic import TypeAdapter, ValidationError

from frameflow.core.logger import get_logger, log_event
from frameflow.model.board import ExtractedShot, ImportResult, OutcomeStatus, Shot
from frameflow.services.gemini import GatewayError, GeminiGateway
from frameflow.services.store import IMPORTED_VISUAL_REFERENCE, BoardStore, new_shot
from frameflow.utils.text import safe_text, strip_code_fences

_logger = get_logger("import")

_SHOTS_ADAPTER = TypeAdapter(List[ExtractedShot])

MSG_NOTHING_EXTRACTED = "No valid shots could be extracted from the document."
MSG_IMPORT_FAILED = "Document analysis failed, please try again."


def build_extraction_prompt(language: str) -> str:
    return f"""
You are an expert Film Director Assistant.
Analyze the attached "Visual Director Breakdown" document (PDF or Text).
Extract the list of shots and return them as a JSON array.

For each shot found in the document, extract:
- "description": The full visual description of the shot, action, and camera movement.
- "visualReference": Any specific lighting, style, color, or reference mentioned. If not explicitly stated, infer a brief style note based on the context.

Output strictly valid JSON array of objects.
Format:
[
  {{ "description": "...", "visualReference": "..." }},
  ...
]
Translate extracted text to {language} if it is not already.
"""


def parse_extracted_shots(text: str) -> List[ExtractedShot]:
    """
    Parse the model's JSON answer. Anything unusable (bad JSON, wrong shape,
    no text) yields []; records without a description are dropped.
    """
    raw = strip_code_fences(text)
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        log_event(_logger, "EXTRACT_PARSE bad_json", logging.WARNING, size=len(raw))
        return []
    # some answers wrap the list: {"shots": [...]}
    if isinstance(data, dict):
        data = data.get("shots")
    if not isinstance(data, list):
        return []
    try:
        records = _SHOTS_ADAPTER.validate_python(data)
    except ValidationError as e:
        log_event(_logger, "EXTRACT_PARSE invalid", logging.WARNING, errors=e.error_count())
        return []
    return [r for r in records if safe_text(r.description)]


class DocumentImporter:
    def __init__(self, store: BoardStore, gateway: GeminiGateway, language: str = "Chinese"):
        self.store = store
        self.gateway = gateway
        self.language = language

    async def import_document(self, data: bytes, media_type: str) -> ImportResult:
        """Extract shots from a breakdown document and append them as one batch."""
        log_event(_logger, "IMPORT start", mime=media_type, size=len(data))
        self.store.set_global_loading(True)
        try:
            try:
                text = await self.gateway.extract_shots(data, media_type, build_extraction_prompt(self.language))
            except GatewayError as e:
                log_event(_logger, "IMPORT failed", logging.ERROR, err=e)
                return ImportResult(status=OutcomeStatus.FAILED, message=MSG_IMPORT_FAILED)

            records = parse_extracted_shots(text)
            if not records:
                log_event(_logger, "IMPORT empty")
                return ImportResult(status=OutcomeStatus.EMPTY, message=MSG_NOTHING_EXTRACTED)

            base = self.store.shot_count()
            shots: List[Shot] = [
                new_shot(
                    index=base + i + 1,
                    description=safe_text(r.description),
                    visual_reference=safe_text(r.visual_reference) or IMPORTED_VISUAL_REFERENCE,
                )
                for i, r in enumerate(records)
            ]
            appended = self.store.append_shots(shots)
            log_event(_logger, "IMPORT ok", count=len(appended))
            return ImportResult(status=OutcomeStatus.OK, shots=appended)
        finally:
            self.store.set_global_loading(False)
