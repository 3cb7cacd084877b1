"""
Essay (志願理由書) Router

志願理由書の4項目を受け取り、AI分析・明和中への準備度・面接で
聞かれそうなキーワードを返す。AIが使えない時は基本分析で返す。
"""

from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from interview_api.utils.essay_processor import (
    ESSAY_SECTIONS,
    EssayAnalysis,
    analyze_essay_structure,
    analyze_meiwa_readiness,
    analyze_with_ai,
    basic_analysis,
    extract_interview_keywords,
)
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/essay", tags=["essay"])


class EssayUploadRequest(BaseModel):
    motivation: str = ""
    research: str = ""
    school_life: str = ""
    future: str = ""
    ocr_source_type: Literal["handwritten", "typed"] = "typed"
    use_ai: bool = True


class AnalyzeTextRequest(BaseModel):
    text: str
    use_ai: bool = True


async def _analyze(sections: dict[str, str], use_ai: bool) -> EssayAnalysis:
    if use_ai:
        return await analyze_with_ai(sections)
    return basic_analysis(sections)


def _analysis_body(analysis: EssayAnalysis) -> dict:
    return {
        "analysis": analysis.to_dict(),
        "research_topic": analysis.research.topic,
        "meiwa_readiness": analyze_meiwa_readiness(analysis),
        "interview_keywords": extract_interview_keywords(analysis),
    }


@router.post("/upload")
async def upload_essay(request: EssayUploadRequest):
    sections = {name: getattr(request, name) for name in ESSAY_SECTIONS}
    for name in ESSAY_SECTIONS:
        if not sections[name].strip():
            raise HTTPException(status_code=400, detail=f"Missing required field: {name}")

    analysis = await _analyze(sections, request.use_ai)
    logger.info(
        "[志願理由書分析] テーマ=%s ai=%s", analysis.research.topic, analysis.ai_analyzed
    )
    return {
        **_analysis_body(analysis),
        "character_count": sum(len(text) for text in sections.values()),
        "ocr_source_type": request.ocr_source_type,
    }


@router.post("/analyze-text")
async def analyze_text(request: AnalyzeTextRequest):
    """OCR結果などの全文を4項目に振り分けてから分析する。"""
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="テキストが必要です")

    sections = analyze_essay_structure(request.text)
    analysis = await _analyze(sections, request.use_ai)
    return {
        "sections": sections,
        **_analysis_body(analysis),
        "character_count": len(request.text),
    }
