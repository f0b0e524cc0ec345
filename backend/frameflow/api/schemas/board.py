from typing import List, Optional
from pydantic import BaseModel

from frameflow.model.board import ImportResult, OperationOutcome, Shot


class ApiKeyReq(BaseModel):
    configured: bool = True


class CreateShotReq(BaseModel):
    description: Optional[str] = None
    visual_reference: Optional[str] = None


class UpdateShotReq(BaseModel):
    description: Optional[str] = None
    visual_reference: Optional[str] = None


class EditFrameReq(BaseModel):
    instruction: str


class OperationResp(BaseModel):
    step: str
    outcome: OperationOutcome
    shot: Shot


class ImportResp(BaseModel):
    step: str
    result: ImportResult
    shots: List[Shot]
