"""
Speech Router

音声認識テキストの文脈補正。
"""

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from interview_api.utils.speech_correction import correct_transcript

router = APIRouter(prefix="/api/speech", tags=["speech"])


class SpeechContext(BaseModel):
    essay_content: dict[str, str] = {}
    current_question: str = ""
    conversation_history: list[dict[str, str]] = []


class ContextualCorrectionRequest(BaseModel):
    text: str = ""
    context: Optional[SpeechContext] = None
    is_interim: bool = False


@router.post("/contextual-correction")
async def contextual_correction(request: ContextualCorrectionRequest):
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="テキストが必要です")

    context = request.context.model_dump() if request.context else None
    result = await correct_transcript(request.text, context, request.is_interim)
    return result.to_dict()
