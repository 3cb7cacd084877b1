"""
Interview (面接) Router

明和中の面接練習。受検生の回答を見て次の質問を決める。

Decision order for next-question:
1. First turn → 本人確認の定型質問
2. 言いかけの回答 → 続きを促す
3. ふざけた回答 → 真剣に答えるよう注意（serious_reminder）
4. 質問とずれた回答 → 軌道修正（clarification）
5. ステージ遷移の判定
6. 探究活動ステージ → 連続深掘り
7. 志願理由書ベースの質問（整合性確認・時間埋め）
8. ステージの質問チェーン → AI、失敗時はルールベース
AIが失敗しても必ず質問を返す。想定外の例外は緊急質問で返す。
"""

import asyncio
import json
import random
from typing import AsyncGenerator, Callable, Literal, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from interview_api.config import settings
from interview_api.prompts.interview_prompts import (
    CLARIFICATION_PROMPT,
    CONSISTENCY_CHECK_PROMPT,
    CONTINUATION_PROMPT,
    CONTINUOUS_DEEP_DIVE_PROMPT,
    GUIDANCE_QUESTION_PROMPT,
    INTERVIEWER_PERSONA,
    OPTIMIZED_QUESTION_PROMPT,
    RESEARCH_QUESTION_PROMPT,
    SERIOUS_REMINDER_PROMPT,
    TIME_FILLER_PROMPT,
)
from interview_api.utils import telemetry
from interview_api.utils.answer_checks import (
    CONTINUATION_FALLBACK,
    NEGATIVE_CLARIFICATION,
    check_answer_alignment,
    check_joking_answer,
    detect_negative_question,
    get_misalignment_reason,
    interpret_negative_response,
    is_incomplete_answer,
    pick_clarification_fallback,
    pick_serious_fallback,
    serious_reminder,
)
from interview_api.utils.cache import get_question_cache, question_signature
from interview_api.utils.deep_dive import (
    determine_deep_dive_strategy,
    generate_deep_dive_question,
    template_selector,
)
from interview_api.utils.evaluation import evaluate_interview, evaluate_single_response
from interview_api.utils.fallback_questions import (
    DEFAULT_FALLBACK_QUESTION,
    DEFAULT_TIME_FILLER_QUESTION,
    GUIDANCE_STYLES,
    OPENING_FIRST_QUESTION,
    answer_count_fallback,
    build_fallback_question,
    continuous_deep_dive_fallback,
    emergency_question,
    forced_exploration_question,
    get_depth_strategy,
    guidance_fallback,
    inquiry_deep_dive_fallback,
    random_emergency_question,
    should_use_motivation_questions,
    time_filler_topics,
)
from interview_api.utils.interview_stages import (
    EXPLORATION_DEEP_DIVE_PAIRS,
    FUTURE_COMPLETE_DEPTH,
    STAGE_COMPLETED,
    STAGE_EXPLORATION,
    STAGE_OPENING,
    STAGE_START_DEPTH,
    DeepDiveQuestion,
    InterviewStage,
    build_conversation_pairs,
    check_stage_transition,
    count_answered,
    count_student_answers,
    find_question,
    generate_question_chain,
    last_message,
    next_question_by_trigger,
    select_interview_pattern,
    select_next_question,
)
from interview_api.utils.llm import call_llm_with_error
from interview_api.utils.question_quality import (
    QuestionKind,
    calculate_question_quality,
    ensure_question_mark,
    is_inappropriate_question,
    is_inappropriate_reminder,
    passes_minimum_quality,
)
from interview_api.utils.research_analysis import (
    MEIWA_QUESTION_TEMPLATES,
    MeiwaQuestionType,
    analyze_research_activity,
    build_meiwa_question,
    evaluate_response_fallback,
)
from interview_api.utils.response_analyzer import (
    analyze_keywords,
    analyze_response,
    extract_continuity_keywords,
)
from interview_api.utils.secure_logger import get_logger, log_error

logger = get_logger(__name__)

router = APIRouter(prefix="/api/interview", tags=["interview"])

# Configuration
DEEP_DIVE_MIN_LENGTH = 20  # 深掘り質問の最低文字数
DEEP_DIVE_MIN_LENGTH_LATE = 25  # 7層目以降
GUIDANCE_MIN_LENGTH = 10
METACOGNITION_DEPTH = 7
MAX_TIME_FILLER_QUESTIONS = 2  # 面接終了を延ばして補う質問の上限
CLOSING_QUESTION = "これで面接を終わります。最後に、伝えておきたいことはありますか？"

QuestionSource = Literal["ai", "cache", "fallback", "emergency"]


class Message(BaseModel):
    role: str  # "interviewer" or "student"
    content: str


class EssayContent(BaseModel):
    motivation: str = ""
    research: str = ""
    school_life: str = ""
    future: str = ""
    inquiry_learning: str = ""


class NextQuestionRequest(BaseModel):
    essay_content: EssayContent = Field(default_factory=EssayContent)
    conversation_history: list[Message] = []
    current_stage: InterviewStage = "opening"
    interview_depth: int = 0
    student_answer_count: Optional[int] = None
    time_remaining: int = Field(default_factory=lambda: settings.interview_duration_seconds)


class StageInfo(BaseModel):
    current_stage: str
    depth: int
    pattern_type: str


class NextQuestionResponse(BaseModel):
    question: str
    stage_info: StageInfo
    question_quality: dict
    source: QuestionSource
    preparation_time: int = 0
    question_id: Optional[str] = None
    stage_transition: Optional[dict] = None
    serious_reminder: bool = False
    clarification: bool = False
    misalignment_reason: Optional[str] = None
    continuous_deep_dive: bool = False
    depth_strategy: Optional[dict] = None
    motivation_usage: Optional[str] = None
    emergency_fallback: bool = False
    interview_completed: bool = False


class OptimizedQuestionRequest(BaseModel):
    essay_content: EssayContent = Field(default_factory=EssayContent)
    conversation_history: list[Message] = []
    student_answer_count: Optional[int] = None


class OptimizedQuestionResponse(BaseModel):
    question: str
    source: QuestionSource
    answer_count: int
    question_quality: dict
    serious_reminder: bool = False
    emergency: bool = False


class EvaluateResponseRequest(BaseModel):
    question: str = ""
    response: str = ""
    essay_content: Optional[EssayContent] = None


class EvaluateRequest(BaseModel):
    conversation_history: list[Message] = []
    session_duration: int = 0


class AnalyzeResponseRequest(BaseModel):
    response: str
    depth: int = 1
    previous_question: str = ""
    use_ai: bool = False


class ResearchQuestionRequest(BaseModel):
    research_topic: str = ""
    question_type: MeiwaQuestionType = "basic_interest"
    research_description: str = ""


class ResearchEvaluateRequest(BaseModel):
    question_type: MeiwaQuestionType
    question: str = ""
    response: str = ""


class ResearchAnalysisRequest(BaseModel):
    description: str = ""


# ===== 共通処理 =====
def _format_history(history: list[dict]) -> str:
    lines = []
    for msg in history:
        speaker = "受検生" if msg.get("role") in ("student", "user") else "面接官"
        lines.append(f"{speaker}: {msg.get('content', '')}")
    return "\n".join(lines) or "（まだ会話はありません）"


def _clean_question(text: str) -> str:
    text = (text or "").strip().strip("「」\"'").strip()
    # 複数行で返ってきた時は最初の質問行を使う
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in lines:
        if "？" in line or "?" in line:
            return ensure_question_mark(line)
    return ensure_question_mark(lines[0]) if lines else ""


async def _ai_question(
    prompt: str,
    user_message: str,
    rejects: Optional[Callable[[str], bool]] = None,
) -> Optional[str]:
    """AIで質問文を1つ生成する。品質チェックに通らなければ None。"""
    result = await call_llm_with_error(
        system_prompt=prompt,
        user_message=user_message,
        max_tokens=settings.gemini_max_output_tokens,
        temperature=settings.gemini_temperature,
        feature="interview",
        response_format="text",
    )
    if not result.success or not result.data:
        return None

    question = _clean_question(result.data.get("text", ""))
    if not passes_minimum_quality(question, prompt):
        logger.info("[面接質問生成] 品質不足のためAI質問を破棄: %s", question[:40])
        return None
    if rejects is not None and rejects(question):
        logger.info("[面接質問生成] 不適切なAI質問を破棄: %s", question[:40])
        return None
    return question


def _response(
    question: str,
    source: QuestionSource,
    stage: str,
    depth: int,
    pattern: str,
    kind: QuestionKind = "normal",
    **extra,
) -> NextQuestionResponse:
    telemetry.record_question_source(source, stage)
    return NextQuestionResponse(
        question=question,
        stage_info=StageInfo(current_stage=stage, depth=depth, pattern_type=pattern),
        question_quality=calculate_question_quality(question, kind).to_dict(),
        source=source,
        **extra,
    )


async def _chain_question(
    question: Optional[DeepDiveQuestion],
    stage: str,
    depth: int,
    pattern: str,
    history: list[dict],
    essay: EssayContent,
) -> tuple[str, QuestionSource]:
    """ガイダンスからAIで質問を作る。キャッシュ・ルールベースの順に代替する。"""
    last_answer = last_message(history, student=True) or ""
    if question is None:
        return build_fallback_question(None, history), "fallback"

    cache = get_question_cache()
    signature = question_signature(stage, pattern, depth, extract_continuity_keywords(last_answer))
    # 最初の質問は直前の回答に依存しないのでキャッシュできる
    if cache is not None and depth > 0:
        cached = await cache.get_question(signature)
        if cached and cached.get("question"):
            return cached["question"], "cache"

    guidance = question.guidance
    prompt = GUIDANCE_QUESTION_PROMPT.format(
        persona=INTERVIEWER_PERSONA,
        stage=stage,
        depth=depth,
        topic=guidance.topic,
        style=GUIDANCE_STYLES.get(guidance.style, guidance.style),
        elements="、".join(guidance.elements) or "特になし",
        context=guidance.context or "特になし",
        research=essay.inquiry_learning or essay.research or "（記載なし）",
        history=_format_history(history),
        last_answer=last_answer or "（なし）",
    )
    text = await _ai_question(
        prompt,
        "次の質問を1つだけ出力してください。",
        rejects=lambda q: is_inappropriate_question(q, GUIDANCE_MIN_LENGTH),
    )
    if text:
        if cache is not None and depth > 0:
            await cache.set_question(signature, text, {"stage": stage, "question_id": question.id})
        return text, "ai"

    fallback = build_fallback_question(question, history)
    # 汎用の質問しか作れない時は、回答内容に寄せたガイダンス用の質問にする
    if fallback == DEFAULT_FALLBACK_QUESTION and stage != STAGE_OPENING:
        fallback = guidance_fallback(last_answer)
    return fallback, "fallback"


async def _continuous_deep_dive(
    history: list[dict], depth: int, essay: EssayContent
) -> tuple[str, QuestionSource]:
    last_answer = last_message(history, student=True) or ""
    keywords = extract_continuity_keywords(last_answer)
    strategy = get_depth_strategy(depth)
    min_length = DEEP_DIVE_MIN_LENGTH_LATE if depth >= METACOGNITION_DEPTH else DEEP_DIVE_MIN_LENGTH

    prompt = CONTINUOUS_DEEP_DIVE_PROMPT.format(
        persona=INTERVIEWER_PERSONA,
        research=essay.inquiry_learning or essay.research or "（記載なし）",
        history=_format_history(history),
        last_answer=last_answer,
        keywords="、".join(keywords) or "（なし）",
        depth=depth,
        strategy=strategy.strategy,
        focus=strategy.focus,
        question_types=strategy.question_types,
        examples=" / ".join(strategy.examples),
    )
    text = await _ai_question(
        prompt,
        "深掘りの質問を1つだけ出力してください。",
        rejects=lambda q: is_inappropriate_question(q, min_length, depth),
    )
    if text:
        return text, "ai"

    forced = forced_exploration_question(last_answer)
    if forced and depth < METACOGNITION_DEPTH:
        return forced, "fallback"
    if keywords:
        return continuous_deep_dive_fallback(keywords, depth), "fallback"
    return inquiry_deep_dive_fallback(last_answer), "fallback"


async def _motivation_question(
    usage: str, history: list[dict], essay: EssayContent
) -> tuple[str, QuestionSource]:
    if usage == "consistency_check":
        prompt = CONSISTENCY_CHECK_PROMPT.format(
            persona=INTERVIEWER_PERSONA,
            motivation=essay.motivation or "（記載なし）",
            history=_format_history(history),
        )
        text = await _ai_question(prompt, "質問を1つだけ出力してください。")
        if text:
            return text, "ai"
        return DEFAULT_FALLBACK_QUESTION, "fallback"

    topics = time_filler_topics(essay.model_dump())
    if not topics:
        return DEFAULT_TIME_FILLER_QUESTION, "fallback"
    label, content = random.choice(topics)
    prompt = TIME_FILLER_PROMPT.format(
        persona=INTERVIEWER_PERSONA,
        topic_label=label,
        topic_content=content,
        history=_format_history(history),
    )
    text = await _ai_question(prompt, "質問を1つだけ出力してください。")
    if text:
        return text, "ai"
    return DEFAULT_TIME_FILLER_QUESTION, "fallback"


async def _decide_next_question(request: NextQuestionRequest) -> NextQuestionResponse:
    history = [m.model_dump() for m in request.conversation_history]
    essay = request.essay_content
    pattern = select_interview_pattern(essay.inquiry_learning or essay.research)
    stage = request.current_stage
    pairs = build_conversation_pairs(history)
    depth = max(request.interview_depth, count_answered(pairs))
    answer_count = (
        request.student_answer_count
        if request.student_answer_count is not None
        else count_student_answers(history)
    )
    last_answer = last_message(history, student=True) or ""
    last_question = last_message(history, student=False) or ""

    # 1. 面接開始
    if answer_count == 0:
        first = find_question(pattern, "opening_1")
        return _response(
            OPENING_FIRST_QUESTION, "fallback", stage, 0, pattern,
            question_id=first.id if first else None,
        )

    # 2. 言いかけの回答
    if is_incomplete_answer(last_answer):
        prompt = CONTINUATION_PROMPT.format(question=last_question, answer=last_answer)
        text = await _ai_question(prompt, "続きを促す質問を1つだけ出力してください。")
        return _response(
            text or CONTINUATION_FALLBACK, "ai" if text else "fallback", stage, depth, pattern
        )

    # 3. ふざけた回答
    if check_joking_answer(last_question, last_answer):
        telemetry.record_joke_detected()
        prompt = SERIOUS_REMINDER_PROMPT.format(question=last_question, answer=last_answer)
        text = await _ai_question(
            prompt, "面接官の発言を出力してください。", rejects=is_inappropriate_reminder
        )
        return _response(
            text or pick_serious_fallback(last_answer),
            "ai" if text else "fallback",
            stage, depth, pattern,
            kind="serious",
            serious_reminder=True,
        )

    # 4. 質問とずれた回答・否定疑問へのあいまいな回答
    if check_answer_alignment(last_question, last_answer):
        reason = get_misalignment_reason(last_question, last_answer)
        telemetry.record_clarification(reason)
        prompt = CLARIFICATION_PROMPT.format(
            question=last_question, answer=last_answer, reason=reason
        )
        text = await _ai_question(
            prompt, "軌道修正の質問を1つだけ出力してください。", rejects=is_inappropriate_reminder
        )
        return _response(
            text or pick_clarification_fallback(last_question, last_answer),
            "ai" if text else "fallback",
            stage, depth, pattern,
            kind="clarification",
            clarification=True,
            misalignment_reason=reason,
        )
    if detect_negative_question(last_question):
        interpretation = interpret_negative_response(last_answer, True)
        if interpretation.needs_clarification and len(last_answer.strip()) < 15:
            telemetry.record_clarification("否定疑問への回答があいまい")
            return _response(
                NEGATIVE_CLARIFICATION, "fallback", stage, depth, pattern,
                kind="clarification",
                clarification=True,
                misalignment_reason="否定疑問への回答があいまい",
            )

    # 5. ステージ遷移（時間が余っていれば面接終了を延ばして志願理由書の質問で補う）
    usage = should_use_motivation_questions(stage, depth, len(history), request.time_remaining)
    stage_transition = None
    next_stage = check_stage_transition(stage, pairs)
    if (
        next_stage == STAGE_COMPLETED
        and usage == "time_filler"
        and depth < FUTURE_COMPLETE_DEPTH + MAX_TIME_FILLER_QUESTIONS
    ):
        next_stage = None
    if next_stage is not None:
        stage_transition = {"from": stage, "to": next_stage, "depth": depth}
        logger.info(f"[面接質問生成] ステージ遷移: {stage} → {next_stage} (depth={depth})")
        stage = next_stage
        usage = should_use_motivation_questions(stage, depth, len(history), request.time_remaining)

    if stage == STAGE_COMPLETED:
        return _response(
            CLOSING_QUESTION, "fallback", stage, depth, pattern,
            stage_transition=stage_transition,
            interview_completed=True,
        )

    # 6. 探究活動の連続深掘り（ステージに入った直後は概要説明の質問から）
    if (
        stage == STAGE_EXPLORATION
        and stage_transition is None
        and len(pairs) < EXPLORATION_DEEP_DIVE_PAIRS
    ):
        text, source = await _continuous_deep_dive(history, depth, essay)
        return _response(
            text, source, stage, len(pairs) + 1, pattern,
            continuous_deep_dive=True,
            depth_strategy=get_depth_strategy(depth).to_dict(),
        )

    chain = generate_question_chain(pattern, stage, depth)
    answered_in_stage = depth - STAGE_START_DEPTH.get(stage, 0)

    # 7. 志願理由書ベースの質問（齟齬確認は連続深掘りの後、時間埋めはチェーンを使い切った後）
    if usage == "consistency_check" or (
        usage == "time_filler" and answered_in_stage >= len(chain.questions)
    ):
        text, source = await _motivation_question(usage, history, essay)
        return _response(
            text, source, stage, depth, pattern,
            stage_transition=stage_transition,
            motivation_usage=usage,
        )

    # 8. 質問チェーン
    question = select_next_question(chain, answered_in_stage)
    if answered_in_stage > 0:
        previous = select_next_question(chain, answered_in_stage - 1)
        trigger = next_question_by_trigger(previous, last_answer) if previous else None
        if trigger is not None:
            question = find_question(pattern, trigger.next_question_id) or question

    text, source = await _chain_question(question, stage, depth, pattern, history, essay)
    return _response(
        text, source, stage, depth, pattern,
        question_id=question.id if question else None,
        preparation_time=(question.preparation_time or 0) if question else 0,
        stage_transition=stage_transition,
    )


async def _next_question_or_emergency(request: NextQuestionRequest) -> NextQuestionResponse:
    try:
        return await _decide_next_question(request)
    except Exception as e:
        log_error("interview.next_question", e, {"stage": request.current_stage})
        history = [m.model_dump() for m in request.conversation_history]
        return _response(
            emergency_question(history),
            "emergency",
            request.current_stage,
            request.interview_depth,
            select_interview_pattern(
                request.essay_content.inquiry_learning or request.essay_content.research
            ),
            emergency_fallback=True,
        )


# ===== エンドポイント =====
@router.post("/next-question", response_model=NextQuestionResponse)
async def get_next_question(request: NextQuestionRequest):
    """次の面接質問を決める。AIが失敗してもルールベースで必ず返す。"""
    return await _next_question_or_emergency(request)


def _sse_event(event_type: str, data: dict) -> str:
    """Format SSE event data."""
    payload = {"type": event_type, **data}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def _generate_next_question_progress(
    request: NextQuestionRequest,
) -> AsyncGenerator[str, None]:
    try:
        yield _sse_event("progress", {
            "step": "analysis", "progress": 30, "label": "回答を分析中...",
        })
        await asyncio.sleep(0.05)

        yield _sse_event("progress", {
            "step": "question", "progress": 60, "label": "次の質問を生成中...",
        })
        result = await _next_question_or_emergency(request)

        yield _sse_event("complete", {"data": result.model_dump()})

    except Exception as e:
        yield _sse_event("error", {"message": f"予期しないエラーが発生しました: {str(e)}"})


@router.post("/next-question/stream")
async def get_next_question_stream(request: NextQuestionRequest):
    """
    SSE streaming version of next-question.
    Yields progress events then complete/error event.
    """
    return StreamingResponse(
        _generate_next_question_progress(request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/generate-question-optimized", response_model=OptimizedQuestionResponse)
async def generate_question_optimized(request: OptimizedQuestionRequest):
    """
    回答数ベースの軽量版。クォータ超過時は回答数の定型質問、
    それ以外のAIエラーは汎用の緊急質問で返す。
    """
    history = [m.model_dump() for m in request.conversation_history]
    answer_count = (
        request.student_answer_count
        if request.student_answer_count is not None
        else count_student_answers(history)
    )

    def respond(question: str, source: QuestionSource, kind: QuestionKind = "normal", **extra):
        telemetry.record_question_source(source)
        return OptimizedQuestionResponse(
            question=question,
            source=source,
            answer_count=answer_count,
            question_quality=calculate_question_quality(question, kind).to_dict(),
            **extra,
        )

    if answer_count == 0:
        return respond(OPENING_FIRST_QUESTION, "fallback")

    last_answer = last_message(history, student=True) or ""
    last_question = last_message(history, student=False) or ""
    if check_joking_answer(last_question, last_answer):
        telemetry.record_joke_detected()
        return respond(serious_reminder(last_question), "fallback", "serious", serious_reminder=True)

    prompt = OPTIMIZED_QUESTION_PROMPT.format(
        persona=INTERVIEWER_PERSONA,
        research=request.essay_content.inquiry_learning or request.essay_content.research or "（記載なし）",
        answer_count=answer_count,
        history=_format_history(history),
        last_answer=last_answer,
    )
    result = await call_llm_with_error(
        system_prompt=prompt,
        user_message="次の質問を1つだけ出力してください。",
        max_tokens=settings.gemini_max_output_tokens,
        temperature=settings.gemini_temperature,
        feature="interview",
        response_format="text",
    )
    if result.success and result.data:
        question = _clean_question(result.data.get("text", ""))
        if passes_minimum_quality(question, prompt):
            return respond(question, "ai")

    error_type = result.error.error_type if result.error else "parse"
    if error_type in ("rate_limit", "billing"):
        logger.warning("[面接質問生成] クォータ超過のため定型質問を返します")
        return respond(answer_count_fallback(answer_count), "fallback")
    return respond(random_emergency_question(), "emergency", emergency=True)


@router.post("/evaluate-response")
async def evaluate_response(request: EvaluateResponseRequest):
    """1問ごとの回答評価（1-5点）"""
    if not request.question or not request.response:
        raise HTTPException(status_code=400, detail="質問と回答が必要です")
    essay = request.essay_content.model_dump() if request.essay_content else None
    return await evaluate_single_response(request.question, request.response, essay)


@router.post("/evaluate")
async def evaluate(request: EvaluateRequest):
    """面接全体の6軸評価"""
    history = [m.model_dump() for m in request.conversation_history]
    return await evaluate_interview(history, request.session_duration)


@router.post("/analyze-response")
async def analyze_response_endpoint(request: AnalyzeResponseRequest):
    """回答の深さ・要素・キーワードと、次の深掘り戦略を返す。"""
    if not request.response.strip():
        raise HTTPException(status_code=400, detail="回答が必要です")

    keyword_analysis = analyze_keywords(request.response)
    strategy = determine_deep_dive_strategy(keyword_analysis, request.depth)
    body = {
        "analysis": analyze_response(request.response).to_dict(),
        "continuity_keywords": extract_continuity_keywords(request.response),
        "keyword_analysis": keyword_analysis.to_dict(),
        "deep_dive_strategy": strategy.to_dict(),
    }
    if request.use_ai:
        generated = await generate_deep_dive_question(
            request.previous_question, request.response, keyword_analysis, request.depth
        )
        body["deep_dive_question"] = generated.to_dict()
    else:
        body["template_question"] = template_selector.select(keyword_analysis, strategy)
    return body


@router.post("/research-question")
async def research_question(request: ResearchQuestionRequest):
    """探究テーマに合わせた明和中の観点別質問"""
    topic = request.research_topic.strip()
    if not topic:
        raise HTTPException(status_code=400, detail="探究テーマが必要です")

    template = MEIWA_QUESTION_TEMPLATES[request.question_type]
    activity = analyze_research_activity(request.research_description or topic)
    prompt = RESEARCH_QUESTION_PROMPT.format(
        topic=topic,
        category=activity.category,
        question_type=request.question_type,
        intent=template.intent,
        criteria="、".join(template.criteria),
        template=template.text,
    )
    text = await _ai_question(prompt, "質問文のみを出力してください。")
    question = build_meiwa_question(topic, request.question_type, text)
    question["source"] = "ai" if text else "fallback"
    telemetry.record_question_source(question["source"])
    return question


@router.post("/research-evaluate")
async def research_evaluate(request: ResearchEvaluateRequest):
    """観点別のキーワード評価"""
    if not request.response.strip():
        raise HTTPException(status_code=400, detail="回答が必要です")
    result = evaluate_response_fallback(request.question_type, request.question, request.response)
    if result is None:
        raise HTTPException(
            status_code=400,
            detail=f"この質問タイプは評価に対応していません: {request.question_type}",
        )
    return result.to_dict()


@router.post("/research-analysis")
async def research_analysis(request: ResearchAnalysisRequest):
    """探究活動の記述の特性分析"""
    if not request.description.strip():
        raise HTTPException(status_code=400, detail="探究活動の記述が必要です")
    return analyze_research_activity(request.description).to_dict()
