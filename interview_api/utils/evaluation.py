"""
面接評価（明和中6軸評価と1問ごとの回答評価）

AIの採点結果を正規化し、総合点と成績を再計算する。AIが使えない時は
会話量に応じた固定のフォールバック評価を返す。
"""

from __future__ import annotations

from typing import Any, Optional

from interview_api.prompts.evaluation_prompts import (
    FINAL_EVALUATION_PROMPT,
    RESPONSE_EVALUATION_PROMPT,
    RESPONSE_EVALUATION_SYSTEM_PROMPT,
)
from interview_api.utils import telemetry
from interview_api.utils.interview_stages import is_student_message
from interview_api.utils.llm import call_llm_with_error
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)

EVALUATION_AXES = (
    "curiosity",
    "empathy",
    "tolerance",
    "persistence",
    "reflection",
    "logical_expression",
)

GRADE_THRESHOLDS = ((4.5, "A"), (3.5, "B"), (2.5, "C"), (1.5, "D"))

RESPONSE_FALLBACK: dict[str, Any] = {
    "score": 3,
    "points": ["一生懸命答えてくれましたね", "自分の言葉で表現できています"],
    "suggestions": ["具体的な例を話してもらえるとさらに良いでしょう", "落ち着いて答えられています"],
}

_VERY_SHORT_FALLBACK = {
    "score": 2.0,
    "grade": "D",
    "strengths": ["面接に参加していただきありがとうございました"],
    "improvements": ["面接時間を長く取って、より多くお話しできると良いでしょう"],
    "suggestions": [
        "次回はもう少し長い時間面接を受けてみましょう",
        "探究活動について具体的に準備してみましょう",
        "リラックスして自分の体験を話してみましょう",
    ],
    "summary": "面接時間が短かったため、詳細な評価は難しい状況でした。次回はより長い時間をかけて面接練習をしてみましょう。",
    "exploration_highlight": "探究活動についてお話しする時間が十分取れませんでした。",
    "impressive_answers": ["面接に参加していただきました。"],
}

_SHORT_FALLBACK = {
    "score": 2.5,
    "grade": "C",
    "strengths": ["面接への取り組み姿勢が見られました"],
    "improvements": ["もう少し長い時間をかけて詳しくお話しできると良いでしょう"],
    "suggestions": [
        "次回はより詳細に探究活動について話してみましょう",
        "具体的な体験エピソードを準備しておきましょう",
        "面接時間を十分に活用して自分をアピールしましょう",
    ],
    "summary": "面接時間が短く、十分な評価は困難でしたが、お話しいただいた内容から可能性を感じます。",
    "exploration_highlight": "限られた時間での探究活動に関するお話でした。",
    "impressive_answers": ["短い時間でしたが、真剣に取り組まれました。"],
}

_NORMAL_FALLBACK = {
    "score": 3.0,
    "grade": "C",
    "strengths": ["面接に真剣に取り組まれました"],
    "improvements": ["より具体的な体験談を話せるとよいでしょう"],
    "suggestions": ["次回は探究活動についてもう少し詳しく準備しましょう"],
    "summary": "面接お疲れさまでした。真剣に取り組んでいただけました。",
    "exploration_highlight": "探究活動について話していただきました。",
    "impressive_answers": ["誠実にお答えいただきました。"],
}


def grade_for(score: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "E"


def clamp_score(value: Any, low: float = 1, high: float = 5) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    return max(low, min(high, number))


def overall_score(scores: dict[str, float]) -> float:
    return round(sum(scores[axis] for axis in EVALUATION_AXES) / len(EVALUATION_AXES), 1)


def session_size(history: list[dict]) -> str:
    student_count = sum(1 for msg in history if is_student_message(msg))
    if student_count < 2:
        return "very_short"
    if student_count < 3:
        return "short"
    return "normal"


def fallback_final_evaluation(history: list[dict]) -> dict[str, Any]:
    """会話量に応じた固定評価（AI不使用）"""
    template = {
        "very_short": _VERY_SHORT_FALLBACK,
        "short": _SHORT_FALLBACK,
        "normal": _NORMAL_FALLBACK,
    }[session_size(history)]

    evaluation: dict[str, Any] = {axis: template["score"] for axis in EVALUATION_AXES}
    evaluation.update(
        overall_score=template["score"],
        overall_grade=template["grade"],
        strengths=list(template["strengths"]),
        improvements=list(template["improvements"]),
        suggestions=list(template["suggestions"]),
    )
    return {
        "evaluation": evaluation,
        "summary": template["summary"],
        "exploration_highlight": template["exploration_highlight"],
        "impressive_answers": list(template["impressive_answers"]),
    }


def normalize_final_evaluation(data: dict[str, Any]) -> Optional[dict[str, Any]]:
    """AI応答を6軸評価に正規化する。軸が欠けていれば None。"""
    raw = data.get("evaluation") if isinstance(data.get("evaluation"), dict) else data
    # AIはcamelCaseで返すことがある
    if "logicalExpression" in raw and "logical_expression" not in raw:
        raw = {**raw, "logical_expression": raw["logicalExpression"]}
    if any(axis not in raw for axis in EVALUATION_AXES):
        return None

    scores = {axis: clamp_score(raw[axis]) for axis in EVALUATION_AXES}
    score = overall_score(scores)
    evaluation: dict[str, Any] = dict(scores)
    evaluation.update(
        overall_score=score,
        overall_grade=grade_for(score),
        strengths=list(raw.get("strengths") or []),
        improvements=list(raw.get("improvements") or []),
        suggestions=list(raw.get("suggestions") or []),
    )
    return {
        "evaluation": evaluation,
        "summary": str(data.get("summary") or ""),
        "exploration_highlight": str(
            data.get("exploration_highlight") or data.get("explorationHighlight") or ""
        ),
        "impressive_answers": list(
            data.get("impressive_answers") or data.get("impressiveAnswers") or []
        ),
    }


def _session_note(size: str) -> str:
    if size == "very_short":
        return (
            "非常に短いセッションです。基本的な評価のみ行い、判定困難な要素があることを明記し、"
            "今後のアドバイスに重点を置いてください。"
        )
    if size == "short":
        return (
            "中途終了のセッションです。限られた情報での評価であることを考慮し、"
            "話された内容は正当に評価してください。"
        )
    return "通常のセッションです。"


def format_transcript(history: list[dict]) -> str:
    lines = []
    for msg in history:
        speaker = "受検生" if is_student_message(msg) else "面接官"
        lines.append(f"{speaker}: {msg.get('content', '')}")
    return "\n".join(lines)


async def evaluate_interview(history: list[dict], session_duration: int = 0) -> dict[str, Any]:
    """面接全体を6軸で評価する。"""
    size = session_size(history)
    student_count = sum(1 for msg in history if is_student_message(msg))
    prompt = FINAL_EVALUATION_PROMPT.format(
        student_count=student_count,
        minutes=session_duration // 60,
        seconds=session_duration % 60,
        session_note=_session_note(size),
        transcript=format_transcript(history),
    )

    result = await call_llm_with_error(
        system_prompt=prompt,
        user_message="面接内容を6つの評価軸で評価し、JSONで出力してください。",
        max_tokens=2000,
        temperature=0.2,
        feature="evaluation",
        retry_on_parse=True,
    )

    evaluation = normalize_final_evaluation(result.data) if result.success and result.data else None
    if evaluation is None:
        logger.warning("[面接評価] AI評価を使用できないためフォールバック評価を返します (%s)", size)
        telemetry.record_evaluation(fallback=True)
        evaluation = fallback_final_evaluation(history)
        evaluation["fallback"] = True
    else:
        telemetry.record_evaluation(fallback=False)

    evaluation["session_info"] = {
        "duration": session_duration,
        "conversation_count": len(history),
    }
    return evaluation


async def evaluate_single_response(
    question: str, response: str, essay: Optional[dict[str, str]] = None
) -> dict[str, Any]:
    """1問の回答を5段階で評価する。"""
    essay = essay or {}
    prompt = RESPONSE_EVALUATION_PROMPT.format(
        motivation=essay.get("motivation", ""),
        research=essay.get("research", ""),
        school_life=essay.get("school_life", ""),
        future=essay.get("future", ""),
        question=question,
        response=response,
    )
    result = await call_llm_with_error(
        system_prompt=RESPONSE_EVALUATION_SYSTEM_PROMPT,
        user_message=prompt,
        max_tokens=800,
        temperature=0.2,
        feature="evaluation",
    )

    data = result.data if result.success else None
    if (
        not data
        or not isinstance(data.get("score"), (int, float))
        or not isinstance(data.get("points"), list)
        or not isinstance(data.get("suggestions"), list)
    ):
        telemetry.record_evaluation(fallback=True)
        return {**RESPONSE_FALLBACK, "fallback": True}

    telemetry.record_evaluation(fallback=False)
    return {
        "score": clamp_score(data["score"]),
        "points": [str(p) for p in data["points"]],
        "suggestions": [str(s) for s in data["suggestions"]],
    }
