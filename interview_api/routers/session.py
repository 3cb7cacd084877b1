"""
Interview Session Router

面接セッションの作成・取得・更新と、回答の記録・進捗確認。
"""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from interview_api.utils.interview_stages import InterviewStage
from interview_api.utils.secure_logger import get_logger
from interview_api.utils.session_store import (
    RECENT_SESSIONS_LIMIT,
    InterviewSession,
    SessionType,
    get_session_store,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/interview/session", tags=["session"])

FIRST_QUESTION_TEMPLATE = "{topic}について研究を始めたきっかけを教えてください。"


class CreateSessionRequest(BaseModel):
    research_topic: str = ""
    essay_id: Optional[str] = None
    session_type: SessionType = "practice"


class UpdateSessionRequest(BaseModel):
    current_stage: Optional[InterviewStage] = None
    final_evaluation: Optional[dict[str, Any]] = None
    overall_score: Optional[float] = None
    end_time: Optional[datetime] = None


class TurnRequest(BaseModel):
    question: str
    answer: str
    question_type: Optional[str] = None


async def _get_or_404(session_id: str) -> InterviewSession:
    session = await get_session_store().get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="セッションが見つかりません")
    return session


@router.post("")
async def create_session(request: CreateSessionRequest):
    topic = request.research_topic.strip()
    if not topic:
        raise HTTPException(status_code=400, detail="探究テーマが必要です")

    session = await get_session_store().create(
        research_topic=topic,
        essay_id=request.essay_id,
        session_type=request.session_type,
    )
    logger.info(f"[Session] ✅ 作成 {session.id} ({session.session_type})")
    return {
        "session_id": session.id,
        "session": session.to_dict(),
        "first_question": {
            "question": FIRST_QUESTION_TEMPLATE.format(topic=topic),
            "type": "basic_interest",
        },
    }


@router.get("")
async def list_sessions():
    sessions = await get_session_store().list_recent(RECENT_SESSIONS_LIMIT)
    return {"sessions": [s.to_dict() for s in sessions]}


@router.get("/{session_id}")
async def get_session(session_id: str):
    session = await _get_or_404(session_id)
    return session.to_dict()


@router.put("/{session_id}")
async def update_session(session_id: str, request: UpdateSessionRequest):
    session = await _get_or_404(session_id)

    if request.current_stage is not None:
        session.current_stage = request.current_stage
    if request.final_evaluation is not None:
        session.final_evaluation = request.final_evaluation
        score = request.final_evaluation.get("overall_score")
        if isinstance(score, (int, float)):
            session.overall_score = float(score)
    if request.overall_score is not None:
        session.overall_score = request.overall_score
    if request.end_time is not None:
        session.finish(request.end_time)

    await get_session_store().save(session)
    return session.to_dict()


@router.post("/{session_id}/turn")
async def add_turn(session_id: str, request: TurnRequest):
    session = await _get_or_404(session_id)
    if session.status == "completed":
        raise HTTPException(status_code=400, detail="このセッションは終了しています")
    if not request.answer.strip():
        raise HTTPException(status_code=400, detail="回答が必要です")

    previous_stage = session.current_stage
    transitioned = session.add_turn(request.question, request.answer, request.question_type)
    await get_session_store().save(session)

    body = {"session": session.to_dict(), "stage_transition": None}
    if transitioned is not None:
        body["stage_transition"] = {"from": previous_stage, "to": transitioned, "depth": session.depth}
    return body


@router.get("/{session_id}/progress")
async def get_progress(session_id: str):
    session = await _get_or_404(session_id)
    return session.progress()
