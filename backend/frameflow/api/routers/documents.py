from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from starlette import status

from frameflow.api.deps import get_importer, get_store
from frameflow.api.files import ALLOWED_DOCUMENTS, read_upload
from frameflow.api.schemas.board import ImportResp
from frameflow.core.config import Settings, get_settings
from frameflow.core.logger import get_logger, log_event
from frameflow.services.document_import import DocumentImporter
from frameflow.services.store import BoardStore

router = APIRouter()
_logger = get_logger("api")


@router.post("/documents/import", response_model=ImportResp)
async def import_document(
    document: UploadFile = File(...),
    store: BoardStore = Depends(get_store),
    importer: DocumentImporter = Depends(get_importer),
    settings: Settings = Depends(get_settings),
):
    log_event(_logger, "START /documents/import", file=document.filename)
    if store.is_global_loading:
        raise HTTPException(status.HTTP_409_CONFLICT, "Another document is being imported.")

    data, size_bytes, mime = read_upload(document, settings.MAX_UPLOAD_SIZE_MB)
    log_event(_logger, "UPLOAD_READ", size=size_bytes, mime=mime)
    if mime not in ALLOWED_DOCUMENTS:
        log_event(_logger, "UNSUPPORTED_MEDIA", mime=mime)
        raise HTTPException(status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, f"Unsupported document type: {mime}")
    if not data:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Empty document.")

    result = await importer.import_document(data, mime)
    log_event(_logger, "END /documents/import", status=result.status.value, shots=len(result.shots))
    return ImportResp(step="import_done", result=result, shots=store.snapshot().shots)
