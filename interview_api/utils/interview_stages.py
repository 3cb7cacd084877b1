"""
面接進行ステートマシンと質問パターン定義

ステージ: opening → exploration → metacognition → future → completed

- 回答済みペア数（面接官の質問 + 空でない受検生の回答）で次ステージへ進む
- 志願理由書の探究活動テキストから質問パターン（芸術・協働型 / 科学探究型）を選ぶ
- 各ステージの質問チェーンと、回答内容で分岐するフォローアップを持つ
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Optional, Sequence

# ===== ステージ =====
STAGE_OPENING = "opening"  # 本人確認・交通手段・所要時間
STAGE_EXPLORATION = "exploration"  # 探究活動の深掘り
STAGE_METACOGNITION = "metacognition"  # 振り返り・自己変容
STAGE_FUTURE = "future"  # 継続意欲・将来
STAGE_COMPLETED = "completed"

STAGES = (
    STAGE_OPENING,
    STAGE_EXPLORATION,
    STAGE_METACOGNITION,
    STAGE_FUTURE,
    STAGE_COMPLETED,
)

InterviewStage = Literal["opening", "exploration", "metacognition", "future", "completed"]

# ===== 質問の意図 =====
QuestionIntent = Literal[
    "basic_confirmation",
    "trigger_exploration",
    "difficulty_probing",
    "solution_process",
    "collaboration_detail",
    "information_gathering",
    "failure_learning",
    "metacognitive_connection",
    "continuation_willingness",
    "creation_detail",
    "self_change",
]

# ===== 明和中の評価観点 =====
MeiwaAxis = Literal[
    "genuine_interest",
    "experience_based",
    "social_connection",
    "inquiry_nature",
    "empathy_communication",
    "empathy",
    "self_transformation",
    "original_expression",
]

ExpectedDepth = Literal["surface", "moderate", "deep", "profound"]
GuidanceStyle = Literal["formal", "friendly", "encouraging"]

# ===== パターン =====
PATTERN_ARTISTIC = "artistic_collaborative"
PATTERN_SCIENTIFIC = "scientific_inquiry"
DEFAULT_PATTERN = PATTERN_ARTISTIC

ARTISTIC_KEYWORDS = re.compile(r"ダンス|音楽|演劇|美術|歌|楽器")
SCIENTIFIC_KEYWORDS = re.compile(
    r"実験|観察|科学|理科|化学|物理|生物|メダカ|pH|水質|植物|測定|飼育|栽培"
)

# 探究活動は7回答で次へ進める状態になるが、9回答までの連続深掘りと
# 志願理由書との齟齬確認1回が終わるまではステージを続ける
EXPLORATION_DEEP_DIVE_PAIRS = 9
EXPLORATION_END_DEPTH = EXPLORATION_DEEP_DIVE_PAIRS + 1
METACOGNITION_END_DEPTH = EXPLORATION_END_DEPTH + 3
# future ステージはこの回答数で面接終了
FUTURE_COMPLETE_DEPTH = METACOGNITION_END_DEPTH + 2


@dataclass(frozen=True)
class FollowUpTrigger:
    condition: str  # 回答に対する正規表現
    next_question_id: str
    depth_increase: int = 1

    def matches(self, response: str) -> bool:
        return bool(re.search(self.condition, response or ""))


@dataclass(frozen=True)
class QuestionGuidance:
    """AIに質問を生成させる際の指示。"""

    topic: str
    style: GuidanceStyle
    elements: tuple[str, ...] = ()
    context: str = ""


@dataclass(frozen=True)
class DeepDiveQuestion:
    id: str
    intent: QuestionIntent
    evaluation_focus: MeiwaAxis
    expected_depth: ExpectedDepth
    guidance: QuestionGuidance
    follow_up_triggers: tuple[FollowUpTrigger, ...] = ()
    preparation_time: Optional[int] = None  # 秒

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "intent": self.intent,
            "evaluation_focus": self.evaluation_focus,
            "expected_depth": self.expected_depth,
            "preparation_time": self.preparation_time,
            "topic": self.guidance.topic,
            "style": self.guidance.style,
        }


@dataclass(frozen=True)
class StageTransitionCondition:
    min_depth: int
    next_stage: str
    required_elements: tuple[str, ...] = ()
    evaluated_axes: tuple[MeiwaAxis, ...] = ()
    hold_until: int = 0  # 最低深度を満たしてもこの回答数まではステージを続ける

    @property
    def transition_depth(self) -> int:
        return max(self.min_depth, self.hold_until)


@dataclass
class QuestionChain:
    pattern: str
    stage: str
    depth: int
    questions: list[DeepDiveQuestion] = field(default_factory=list)
    transition: Optional[StageTransitionCondition] = None


@dataclass(frozen=True)
class ConversationPair:
    question: str
    response: str


STAGE_TRANSITIONS: dict[str, StageTransitionCondition] = {
    STAGE_OPENING: StageTransitionCondition(
        min_depth=3,
        next_stage=STAGE_EXPLORATION,
        required_elements=("交通手段", "時間"),
        evaluated_axes=("original_expression",),
    ),
    STAGE_EXPLORATION: StageTransitionCondition(
        min_depth=7,
        next_stage=STAGE_METACOGNITION,
        required_elements=("活動内容", "きっかけ", "困難", "解決策", "学び"),
        evaluated_axes=("genuine_interest", "experience_based"),
        hold_until=EXPLORATION_END_DEPTH,
    ),
    STAGE_METACOGNITION: StageTransitionCondition(
        min_depth=METACOGNITION_END_DEPTH,
        next_stage=STAGE_FUTURE,
        required_elements=("学び", "自己変容"),
        evaluated_axes=("self_transformation", "inquiry_nature"),
    ),
    STAGE_FUTURE: StageTransitionCondition(
        min_depth=FUTURE_COMPLETE_DEPTH,
        next_stage=STAGE_COMPLETED,
        required_elements=("継続意欲",),
        evaluated_axes=("social_connection",),
    ),
}

# 各ステージ開始時点の累計回答数
STAGE_START_DEPTH = {
    STAGE_OPENING: 0,
    STAGE_EXPLORATION: STAGE_TRANSITIONS[STAGE_OPENING].transition_depth,
    STAGE_METACOGNITION: STAGE_TRANSITIONS[STAGE_EXPLORATION].transition_depth,
    STAGE_FUTURE: STAGE_TRANSITIONS[STAGE_METACOGNITION].transition_depth,
    STAGE_COMPLETED: FUTURE_COMPLETE_DEPTH,
}


def _q(
    id: str,
    intent: QuestionIntent,
    focus: MeiwaAxis,
    depth: ExpectedDepth,
    topic: str,
    style: GuidanceStyle,
    elements: Iterable[str] = (),
    context: str = "",
    triggers: Iterable[FollowUpTrigger] = (),
    preparation_time: Optional[int] = None,
) -> DeepDiveQuestion:
    return DeepDiveQuestion(
        id=id,
        intent=intent,
        evaluation_focus=focus,
        expected_depth=depth,
        guidance=QuestionGuidance(topic, style, tuple(elements), context),
        follow_up_triggers=tuple(triggers),
        preparation_time=preparation_time,
    )


OPENING_QUESTIONS = [
    _q(
        "opening_1", "basic_confirmation", "original_expression", "surface",
        "面接開始・本人確認", "formal",
        elements=("面接開始の挨拶", "受検番号", "名前"),
        context="面接の最初。受検番号と名前を確認する",
    ),
    _q(
        "opening_2", "basic_confirmation", "original_expression", "surface",
        "交通手段の確認", "friendly",
        elements=("相槌", "交通手段"),
        context="緊張をほぐすため、会場までの交通手段を聞く",
        triggers=(FollowUpTrigger(r"電車|バス|車|自転車|歩い|徒歩", "opening_3", 1),),
    ),
    _q(
        "opening_3", "basic_confirmation", "original_expression", "surface",
        "所要時間の確認", "friendly",
        elements=("交通手段への相槌", "所要時間"),
        context="交通手段の回答を受けて、かかった時間を聞く",
    ),
]

ARTISTIC_QUESTIONS = {
    STAGE_EXPLORATION: [
        _q(
            "art_1", "trigger_exploration", "genuine_interest", "moderate",
            "探究活動の概要説明", "encouraging",
            elements=("本題への切り替え", "1分程度での説明依頼"),
            triggers=(FollowUpTrigger(r"ダンス|音楽|美術|演劇", "art_2", 1),),
            preparation_time=60,
        ),
        _q(
            "art_2", "trigger_exploration", "genuine_interest", "moderate",
            "探究活動を始めたきっかけ", "encouraging",
            elements=("活動内容への相槌", "始めたきっかけ"),
            triggers=(FollowUpTrigger(r"友達|家族|先生|テレビ|本", "art_3", 1),),
        ),
        _q(
            "art_3", "difficulty_probing", "experience_based", "deep",
            "練習や制作で困ったこと", "friendly",
            elements=("具体的な場面", "困難の内容"),
        ),
        _q(
            "art_4", "collaboration_detail", "empathy_communication", "deep",
            "仲間と意見が分かれた時の対応", "friendly",
            elements=("意見の違い", "話し合いの方法"),
        ),
        _q(
            "art_5", "solution_process", "experience_based", "deep",
            "困難を乗り越えた工夫", "encouraging",
            elements=("工夫の内容", "結果"),
        ),
    ],
    STAGE_METACOGNITION: [
        _q(
            "art_meta_1", "failure_learning", "inquiry_nature", "deep",
            "うまくいかなかった経験からの学び", "encouraging",
            elements=("失敗の振り返り", "学び"),
        ),
        _q(
            "art_meta_2", "self_change", "self_transformation", "profound",
            "活動を通した自分自身の変化", "encouraging",
            elements=("以前の自分との比較", "変化のきっかけ"),
        ),
        _q(
            "art_meta_3", "creation_detail", "original_expression", "profound",
            "表現で大切にしていること", "friendly",
            elements=("自分らしさ", "表現の工夫"),
        ),
    ],
}

SCIENTIFIC_QUESTIONS = {
    STAGE_EXPLORATION: [
        _q(
            "sci_1", "trigger_exploration", "genuine_interest", "moderate",
            "探究活動の概要説明", "encouraging",
            elements=("本題への切り替え", "1分程度での説明依頼"),
            triggers=(FollowUpTrigger(r"実験|観察|飼育|栽培|測定|調べ", "sci_2", 1),),
            preparation_time=60,
        ),
        _q(
            "sci_2", "trigger_exploration", "genuine_interest", "moderate",
            "探究活動を始めたきっかけ", "encouraging",
            elements=("活動内容への相槌", "始めたきっかけ"),
            triggers=(FollowUpTrigger(r"友達|家族|先生|テレビ|本|授業", "sci_3", 1),),
        ),
        _q(
            "sci_3", "information_gathering", "inquiry_nature", "deep",
            "調べ方・測定方法", "friendly",
            elements=("方法の具体性", "道具や記録"),
        ),
        _q(
            "sci_4", "difficulty_probing", "experience_based", "deep",
            "予想と違った結果への対処", "friendly",
            elements=("予想と結果の違い", "対処"),
        ),
        _q(
            "sci_5", "solution_process", "inquiry_nature", "deep",
            "改善のための工夫", "encouraging",
            elements=("工夫の内容", "改善の結果"),
        ),
    ],
    STAGE_METACOGNITION: [
        _q(
            "sci_meta_1", "failure_learning", "inquiry_nature", "deep",
            "失敗から得た学び", "encouraging",
            elements=("失敗の振り返り", "次に活かしたこと"),
        ),
        _q(
            "sci_meta_2", "metacognitive_connection", "social_connection", "profound",
            "探究と身近な生活や社会とのつながり", "encouraging",
            elements=("日常生活との関係", "社会への影響"),
        ),
        _q(
            "sci_meta_3", "self_change", "self_transformation", "profound",
            "探究を通した自分自身の変化", "encouraging",
            elements=("以前の自分との比較", "物の見方の変化"),
        ),
    ],
}

FUTURE_QUESTIONS = [
    _q(
        "future_1", "continuation_willingness", "genuine_interest", "deep",
        "今後の探究の続け方", "encouraging",
        elements=("続けたいこと", "新しい疑問"),
    ),
    _q(
        "future_2", "metacognitive_connection", "social_connection", "profound",
        "明和中学校での学びへの活かし方", "formal",
        elements=("中学校生活での目標", "探究との関係"),
    ),
]

PATTERNS: dict[str, dict[str, list[DeepDiveQuestion]]] = {
    PATTERN_ARTISTIC: {
        STAGE_OPENING: OPENING_QUESTIONS,
        **ARTISTIC_QUESTIONS,
        STAGE_FUTURE: FUTURE_QUESTIONS,
        STAGE_COMPLETED: [],
    },
    PATTERN_SCIENTIFIC: {
        STAGE_OPENING: OPENING_QUESTIONS,
        **SCIENTIFIC_QUESTIONS,
        STAGE_FUTURE: FUTURE_QUESTIONS,
        STAGE_COMPLETED: [],
    },
}


def select_interview_pattern(inquiry_text: Optional[str]) -> str:
    """探究活動の記述から質問パターンを選ぶ。科学系キーワードが多い時だけ科学探究型。"""
    if not inquiry_text:
        return DEFAULT_PATTERN
    artistic = len(ARTISTIC_KEYWORDS.findall(inquiry_text))
    scientific = len(SCIENTIFIC_KEYWORDS.findall(inquiry_text))
    if scientific > artistic:
        return PATTERN_SCIENTIFIC
    return DEFAULT_PATTERN


def generate_question_chain(pattern: str, stage: str, depth: int = 0) -> QuestionChain:
    """パターンとステージから質問チェーンを作る。未知のパターンは KeyError。"""
    stages = PATTERNS[pattern]
    if stage not in stages:
        raise KeyError(f"unknown stage: {stage}")
    return QuestionChain(
        pattern=pattern,
        stage=stage,
        depth=depth,
        questions=list(stages[stage]),
        transition=STAGE_TRANSITIONS.get(stage),
    )


def find_question(pattern: str, question_id: str) -> Optional[DeepDiveQuestion]:
    for questions in PATTERNS.get(pattern, {}).values():
        for question in questions:
            if question.id == question_id:
                return question
    return None


def select_next_question(
    chain: QuestionChain, answered_in_stage: int
) -> Optional[DeepDiveQuestion]:
    """ステージ内の回答数に応じて順番に質問を選ぶ（末尾で止まる）。"""
    if not chain.questions:
        return None
    index = min(max(answered_in_stage, 0), len(chain.questions) - 1)
    return chain.questions[index]


def next_question_by_trigger(
    question: DeepDiveQuestion, response: str
) -> Optional[FollowUpTrigger]:
    for trigger in question.follow_up_triggers:
        if trigger.matches(response):
            return trigger
    return None


def _role_of(message: Any) -> str:
    role = message.get("role") if isinstance(message, dict) else getattr(message, "role", "")
    return (role or "").lower()


def _content_of(message: Any) -> str:
    content = (
        message.get("content") if isinstance(message, dict) else getattr(message, "content", "")
    )
    return content or ""


def is_student_message(message: Any) -> bool:
    return _role_of(message) in ("student", "user")


def is_interviewer_message(message: Any) -> bool:
    return _role_of(message) in ("interviewer", "assistant", "model")


def count_student_answers(history: Sequence[Any]) -> int:
    """空でない受検生の回答数。"""
    return sum(1 for m in history if is_student_message(m) and _content_of(m).strip())


def build_conversation_pairs(history: Sequence[Any]) -> list[ConversationPair]:
    """面接官の発言と直後の受検生の回答をペアにする。"""
    pairs: list[ConversationPair] = []
    for current, following in zip(history, history[1:]):
        if is_interviewer_message(current) and is_student_message(following):
            pairs.append(ConversationPair(_content_of(current), _content_of(following)))
    return pairs


def last_message(history: Sequence[Any], student: bool) -> Optional[str]:
    check = is_student_message if student else is_interviewer_message
    for message in reversed(history):
        if check(message):
            return _content_of(message)
    return None


def count_answered(pairs: Iterable[ConversationPair]) -> int:
    return sum(1 for p in pairs if p.response.strip())


def check_stage_transition(
    stage: str, pairs: Sequence[ConversationPair]
) -> Optional[str]:
    """回答済みペア数がステージの遷移深度に達していれば次ステージ名を返す。"""
    condition = STAGE_TRANSITIONS.get(stage)
    if condition is None:
        return None
    if count_answered(pairs) >= condition.transition_depth:
        return condition.next_stage
    return None


def stage_for_depth(depth: int) -> str:
    """累計回答数に対応するステージ（途中から再開する時用）。"""
    stage = STAGE_OPENING
    while True:
        condition = STAGE_TRANSITIONS.get(stage)
        if condition is None or depth < condition.transition_depth:
            return stage
        stage = condition.next_stage
