"""
OCR Router

手書きの志願理由書を Gemini Vision で読み取る。
ページは base64 の JSON で受け取る。
"""

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from interview_api.utils.ocr import (
    EstimatedAge,
    ImageQuality,
    OCRValidationError,
    process_handwriting,
    validate_page,
)
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/ocr", tags=["ocr"])


class PageInput(BaseModel):
    data: str  # base64 または data URL
    mime_type: str
    clarity: float = Field(default=0.5, ge=0.0, le=1.0)
    contrast: float = Field(default=0.5, ge=0.0, le=1.0)


class HandwritingRequest(BaseModel):
    pages: list[PageInput] = []
    estimated_age: EstimatedAge = "elementary"


class CorrectionRequest(BaseModel):
    original_text: str
    corrected_text: str
    page_number: Optional[int] = None


@router.post("/handwriting")
async def recognize_handwriting(request: HandwritingRequest):
    if not request.pages:
        raise HTTPException(status_code=400, detail="No files uploaded")

    for page in request.pages:
        try:
            validate_page(page.data, page.mime_type)
        except OCRValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))

    result = await process_handwriting(
        [(p.data, p.mime_type, ImageQuality(p.clarity, p.contrast)) for p in request.pages],
        request.estimated_age,
    )
    logger.info(
        "[手書きOCR] %dページ 信頼度=%.2f 要確認=%s",
        result.total_pages,
        result.overall_confidence,
        result.needs_review,
    )
    return result.to_dict()


@router.put("/handwriting")
async def submit_correction(request: CorrectionRequest):
    """利用者による読み取り結果の修正を記録する。"""
    logger.info(
        "[手書きOCR] 修正を受信 page=%s %d文字 → %d文字",
        request.page_number,
        len(request.original_text),
        len(request.corrected_text),
    )
    return {"success": True, "message": "修正内容を記録しました"}
