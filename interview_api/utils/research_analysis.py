"""
探究活動の分析と明和中の観点別評価

探究活動の記述からカテゴリーと特性（複雑さ・正解の有無・社会性など）を
キーワードで判定し、観点別の質問テンプレートとキーワード評価を提供する。
"""

from __future__ import annotations

import math
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from interview_api.utils.answer_checks import (
    detect_negative_question,
    interpret_negative_response,
)

MeiwaQuestionType = Literal[
    "basic_interest",
    "experience_detail",
    "social_awareness",
    "complexity_check",
    "empathy_test",
    "growth_reflection",
    "expression_quality",
    "deep_dive",
    "challenge",
    "synthesis",
]

# 宣言順に判定し、最初に当たったカテゴリーを採用
RESEARCH_CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "science_experiment": ("実験", "観察", "科学", "理科", "化学", "物理", "生物"),
    "social_investigation": ("調査", "社会", "アンケート", "統計", "歴史", "政治"),
    "environmental_study": ("環境", "生態", "自然", "動物", "植物", "気候"),
    "cultural_exploration": ("文化", "伝統", "芸能", "祭り", "風習", "言語"),
    "technology_creation": ("プログラミング", "ロボット", "発明", "IT", "アプリ"),
    "community_service": ("ボランティア", "地域", "福祉", "高齢者", "子ども"),
    "artistic_expression": ("絵画", "音楽", "創作", "アート", "表現"),
    "health_wellness": ("健康", "医療", "食事", "運動", "心理"),
    "international_awareness": ("国際", "外国", "多文化", "言語", "交流"),
    "philosophical_inquiry": ("哲学", "倫理", "考える", "疑問", "本質"),
}
DEFAULT_RESEARCH_CATEGORY = "social_investigation"

COMPLEXITY_INDICATORS = (
    "複数の要因", "相互作用", "長期的", "多角的", "様々な視点",
    "深く", "複雑", "多面的", "総合的", "システム",
)
DEFINITIVE_INDICATORS = (
    "正解", "答え", "公式", "定理", "法則", "決まった方法",
    "1つの結論", "明確な答え", "確実", "絶対",
)
OPEN_ENDED_INDICATORS = (
    "様々な", "多様な", "人それぞれ", "考え方による", "視点",
    "可能性", "創造的", "新しい発見", "未知", "探究",
)
SOCIAL_INDICATORS = (
    "社会", "地域", "人々", "みんな", "世界", "日本",
    "問題", "課題", "改善", "貢献", "役立つ",
)
PERSONAL_INDICATORS = (
    "自分", "私", "体験", "経験", "感じた", "思った",
    "気づいた", "学んだ", "変わった", "成長",
)
ORIGINALITY_INDICATORS = (
    "新しい", "独自", "オリジナル", "工夫", "発見",
    "考えた", "思いついた", "アイデア", "創造",
)
SUSTAINABILITY_INDICATORS = (
    "続けて", "継続", "ずっと", "今後", "将来",
    "もっと", "さらに", "深く", "発展",
)


def _clamp(value: int, low: int = 1, high: int = 5) -> int:
    return min(high, max(low, value))


def _hits(text: str, indicators: tuple[str, ...]) -> int:
    return sum(1 for word in indicators if word in text)


@dataclass
class ResearchActivityAnalysis:
    category: str
    complexity: int
    has_definitive_answer: bool
    social_relevance: int
    personal_connection: int
    originality_level: int
    sustainability_potential: int

    def to_dict(self) -> dict:
        return asdict(self)


def classify_research_category(text: str) -> str:
    for category, keywords in RESEARCH_CATEGORY_KEYWORDS.items():
        if any(word in text for word in keywords):
            return category
    return DEFAULT_RESEARCH_CATEGORY


def assess_complexity(text: str) -> int:
    return _clamp(math.ceil(_hits(text, COMPLEXITY_INDICATORS) / 2) + 2)


def check_definitive_answer(text: str) -> bool:
    return _hits(text, DEFINITIVE_INDICATORS) > _hits(text, OPEN_ENDED_INDICATORS)


def assess_social_relevance(text: str) -> int:
    return _clamp(_hits(text, SOCIAL_INDICATORS) + 1)


def assess_personal_connection(text: str) -> int:
    return _clamp(_hits(text, PERSONAL_INDICATORS) + 1)


def assess_originality(text: str) -> int:
    return _clamp(_hits(text, ORIGINALITY_INDICATORS) + 2)


def assess_sustainability(text: str) -> int:
    return _clamp(_hits(text, SUSTAINABILITY_INDICATORS) + 2)


def analyze_research_activity(description: str) -> ResearchActivityAnalysis:
    description = description or ""
    return ResearchActivityAnalysis(
        category=classify_research_category(description),
        complexity=assess_complexity(description),
        has_definitive_answer=check_definitive_answer(description),
        social_relevance=assess_social_relevance(description),
        personal_connection=assess_personal_connection(description),
        originality_level=assess_originality(description),
        sustainability_potential=assess_sustainability(description),
    )


# ===== 質問テンプレート =====
@dataclass(frozen=True)
class MeiwaQuestionTemplate:
    text: str
    intent: str
    criteria: tuple[str, ...]
    expected: str
    triggers: tuple[str, ...]
    difficulty: int


MEIWA_QUESTION_TEMPLATES: dict[str, MeiwaQuestionTemplate] = {
    "basic_interest": MeiwaQuestionTemplate(
        "その探究活動について、どうしてそのテーマを選んだのですか？",
        "真の興味・関心の度合いを確認",
        ("自発性", "継続的関心", "熱意の真正性"),
        "具体的なきっかけと継続的な関心を示す",
        ("もっと詳しく", "具体的には", "どんな気持ち"),
        2,
    ),
    "experience_detail": MeiwaQuestionTemplate(
        "実際にどのような方法で調べたり、実験したりしましたか？",
        "体験・学び基盤性の確認",
        ("実体験の具体性", "学習プロセス", "取り組み方"),
        "具体的な行動と学習過程を示す",
        ("困ったこと", "工夫したこと", "学んだこと"),
        3,
    ),
    "social_awareness": MeiwaQuestionTemplate(
        "その探究活動は、身の回りの人や社会とどのような関係がありますか？",
        "社会・日常連結性の確認",
        ("現実世界との関連", "社会的意義", "日常生活への影響"),
        "社会や日常生活との具体的な関連を示す",
        ("どんな影響", "なぜ重要", "他の人にとって"),
        4,
    ),
    "complexity_check": MeiwaQuestionTemplate(
        "その問題には、決まった正解がありますか？",
        "探究性・非正解性の確認",
        ("問題の複雑性", "多様な視点", "創造的思考の余地"),
        "複雑で多面的な問題であることを示す",
        ("どんな答え", "人によって違う", "新しい発見"),
        5,
    ),
    "empathy_test": MeiwaQuestionTemplate(
        "その探究活動について、友達や家族に説明するとしたら、どのように話しますか？",
        "他者理解・共感可能性の確認",
        ("説明の明確性", "共感可能性", "普遍的関心"),
        "分かりやすく共感を呼ぶ説明",
        ("どんな反応", "興味を持つ", "分かりやすく"),
        3,
    ),
    "growth_reflection": MeiwaQuestionTemplate(
        "この探究活動を通して、あなた自身はどのように変わりましたか？",
        "自己変容・成長実感の確認",
        ("具体的変化", "成長認識", "価値観の変化"),
        "具体的な自己変容を示す",
        ("どんな変化", "前と比べて", "新しい考え"),
        4,
    ),
    "expression_quality": MeiwaQuestionTemplate(
        "今話してくれたことを、あなた自身の言葉でもう一度説明してもらえますか？",
        "自分の言葉表現力の確認",
        ("オリジナリティ", "個人的語彙", "表現の真正性"),
        "独自の表現と個人的な語彙を使用",
        ("あなたらしい言葉", "感じたこと", "思ったこと"),
        3,
    ),
    "deep_dive": MeiwaQuestionTemplate(
        "その中で一番印象に残ったことは何ですか？なぜそれが印象的だったのでしょう？",
        "深い理解と感情的関与の確認",
        ("深い洞察", "感情的関与", "記憶の鮮明さ"),
        "深い洞察と感情的な関与を示す",
        ("なぜ印象的", "どんな気持ち", "何を学んだ"),
        4,
    ),
    "challenge": MeiwaQuestionTemplate(
        "もしその探究をもう一度やり直すとしたら、何を変えたいですか？",
        "批判的思考と向上意欲の確認",
        ("批判的思考", "改善意識", "学習意欲"),
        "建設的な改善案と学習意欲を示す",
        ("どうして変える", "どんな結果", "新しいアイデア"),
        5,
    ),
    "synthesis": MeiwaQuestionTemplate(
        "この探究活動で得たことを、将来どのように活かしていきたいですか？",
        "統合的思考と将来展望の確認",
        ("統合的思考", "将来展望", "継続意欲"),
        "学びの統合と将来への具体的展望",
        ("具体的に", "どんな場面で", "どんな風に"),
        4,
    ),
}


def personalize_question(template: MeiwaQuestionTemplate, research_topic: str) -> str:
    return template.text.replace("その探究活動", f"「{research_topic}」の探究")


def build_meiwa_question(research_topic: str, question_type: str, text: str | None = None) -> dict[str, Any]:
    """テンプレートから質問オブジェクトを作る。text を渡すとAI生成文で置き換える。"""
    template = MEIWA_QUESTION_TEMPLATES[question_type]
    return {
        "id": f"meiwa_{uuid.uuid4().hex[:12]}",
        "type": question_type,
        "question": text or personalize_question(template, research_topic),
        "intent": template.intent,
        "evaluation_criteria": list(template.criteria),
        "expected_response": template.expected,
        "follow_up_triggers": list(template.triggers),
        "difficulty": template.difficulty,
    }


# ===== 観点別のキーワード評価 =====
GENUINE_INTEREST_KEYWORDS = (
    "好き", "興味", "面白い", "楽しい", "魅力的", "ワクワク",
    "続けたい", "もっと知りたい", "情熱", "夢中",
)
EXPERIENCE_KEYWORDS = (
    "実際に", "体験", "経験", "やってみた", "試した",
    "観察した", "調べた", "実験", "取り組んだ", "行った",
)
SOCIAL_CONNECTION_KEYWORDS = (
    "社会", "地域", "みんな", "人々", "世界", "日本",
    "役立つ", "貢献", "影響", "関係", "つながり", "大切",
)
OTHER_UNDERSTANDING_KEYWORDS = (
    "分かりやすく", "説明", "みんな", "友達", "家族",
    "共感", "理解", "興味", "関心", "身近",
)
SELF_TRANSFORMATION_KEYWORDS = (
    "変わった", "成長", "学んだ", "気づいた", "考えるように",
    "行動", "価値観", "見方", "思うように", "感じるように",
)
COMMON_PHRASES = ("思います", "だと思う", "という感じ", "みたいな")
UNIQUE_INDICATORS = ("感じた", "実感", "心から", "本当に", "自分なりに")


@dataclass
class AxisEvaluation:
    axis: str
    score: int
    feedback: str
    indicators: list[str] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def score_by_keywords(response: str, keywords: tuple[str, ...]) -> int:
    score = _clamp(math.ceil(_hits(response, keywords) / 2) + 1)
    if len(response) < 50:
        score = max(1, score - 1)
    if len(response) > 200:
        score = min(5, score + 1)
    return score


def originality_score(response: str) -> int:
    return _clamp(3 - _hits(response, COMMON_PHRASES) + _hits(response, UNIQUE_INDICATORS))


def _keyword_axis(axis: str, label: str, score: int, good: str, improve: str, **details) -> AxisEvaluation:
    return AxisEvaluation(
        axis=axis,
        score=score,
        feedback=f"{label}: {score}/5点。{good if score >= 4 else improve}",
        concerns=[] if score >= 3 else [improve],
        details=details,
    )


def evaluate_response_fallback(question_type: str, question_text: str, response: str) -> AxisEvaluation | None:
    """質問タイプに対応する観点をキーワードで採点する。対応がなければ None。"""
    response = response or ""

    if question_type == "basic_interest":
        score = score_by_keywords(response, GENUINE_INTEREST_KEYWORDS)
        return _keyword_axis(
            "genuine_interest", "探究活動への真の興味・関心度", score,
            "素晴らしい熱意が伝わります！", "更に具体的な興味のポイントを教えてください。",
        )
    if question_type == "experience_detail":
        score = score_by_keywords(response, EXPERIENCE_KEYWORDS)
        return _keyword_axis(
            "experience_based", "体験・学び基盤性", score,
            "具体的な体験がよく伝わります！", "より詳しい体験の過程を聞かせてください。",
        )
    if question_type == "social_awareness":
        score = score_by_keywords(response, SOCIAL_CONNECTION_KEYWORDS)
        return _keyword_axis(
            "social_connection", "社会・日常連結性", score,
            "社会との関連がよく理解できています！", "社会や日常生活との関連をもう少し詳しく教えてください。",
        )
    if question_type == "complexity_check":
        interpretation = interpret_negative_response(
            response, detect_negative_question(question_text)
        )
        meaning = interpretation.actual_meaning
        if "ない" in meaning:
            score = 5
        elif "ある" in meaning:
            score = 2
        else:
            score = 3
        return _keyword_axis(
            "inquiry_nature", "探究性・非正解性", score,
            "素晴らしい探究的思考です！", "多様な答えが考えられる問題への発展を考えてみましょう。",
            multiple_views="ある" not in meaning,
            interpretation=interpretation.to_dict(),
        )
    if question_type == "empathy_test":
        score = score_by_keywords(response, OTHER_UNDERSTANDING_KEYWORDS)
        return _keyword_axis(
            "empathy_communication", "他者理解・共感可能性", score,
            "他の人にもよく伝わる説明ですね！", "より多くの人が理解できる説明を考えてみましょう。",
            universality=score >= 4,
        )
    if question_type == "growth_reflection":
        score = score_by_keywords(response, SELF_TRANSFORMATION_KEYWORDS)
        return _keyword_axis(
            "self_transformation", "自己変容・成長実感", score,
            "素晴らしい成長が感じられます！", "探究を通しての変化をもう少し具体的に教えてください。",
        )
    if question_type == "expression_quality":
        score = originality_score(response)
        return _keyword_axis(
            "original_expression", "自分の言葉表現力", score,
            "あなたらしい表現で素晴らしいです！", "もっとあなた自身の言葉で表現してみてください。",
            authenticity=score >= 3,
        )
    return None
