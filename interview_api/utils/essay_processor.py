"""
志願理由書の処理

4項目（志望動機・探究活動・学校生活・将来）への自動分類、探究テーマ抽出、
明和中向けの面接準備度分析、面接質問用キーワード抽出を行う。
AI分析に失敗した場合は基本分析にフォールバックする。
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any

from interview_api.prompts.essay_prompts import ESSAY_ANALYSIS_PROMPT
from interview_api.utils.llm import call_llm_with_error
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)

ESSAY_SECTIONS = ("motivation", "research", "school_life", "future")
DEFAULT_RESEARCH_TOPIC = "探究活動"
MIN_PARAGRAPH_LENGTH = 20

SECTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "motivation": ("志望", "理由", "なぜ", "憧れ", "魅力", "選んだ", "入学したい"),
    "research": ("調べ", "研究", "探究", "実験", "観察", "発見", "疑問", "課題"),
    "school_life": ("中学", "高校", "学校生活", "部活", "友達", "先輩", "活動", "目標"),
    "future": ("将来", "夢", "職業", "大学", "社会", "貢献", "活かし", "続け"),
}

TOPIC_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"(.+?)について",
        r"(.+?)を調べ",
        r"(.+?)の研究",
        r"(.+?)を研究",
        r"(.+?)の実験",
        r"(.+?)を観察",
    )
)

METHOD_KEYWORDS = ("調べた", "実験", "観察", "測定", "比較", "インタビュー", "アンケート")
CHALLENGE_KEYWORDS = ("難しかった", "困った", "失敗", "問題", "課題", "うまくいかない")
DISCOVERY_KEYWORDS = ("発見", "気づいた", "分かった", "学んだ", "新しい", "驚いた")
SOCIAL_KEYWORDS = ("社会", "地域", "環境", "未来", "人々", "世界", "日本")
EMOTIONAL_WORDS = ("感じた", "驚いた", "気づいた", "学んだ", "考えた")

MEIWA_FIXED_RECOMMENDATIONS = (
    "面接では「その探究内容には決まった正解がないか？」という質問に注意しましょう",
    "探究活動を通じて自分がどう変わったかを具体的に表現できるようにしましょう",
)


@dataclass
class MotivationAnalysis:
    content: str
    key_points: list[str] = field(default_factory=list)
    strength: int = 2
    suggestions: list[str] = field(default_factory=list)


@dataclass
class ResearchAnalysis:
    content: str
    topic: str = DEFAULT_RESEARCH_TOPIC
    depth: int = 2
    social_connection: bool = False
    methodology: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class SchoolLifeAnalysis:
    content: str
    aspirations: list[str] = field(default_factory=list)
    feasibility: int = 2
    suggestions: list[str] = field(default_factory=list)


@dataclass
class FutureAnalysis:
    content: str
    goals: list[str] = field(default_factory=list)
    connection: int = 2
    suggestions: list[str] = field(default_factory=list)


@dataclass
class OverallScore:
    total: int = 2
    readiness: int = 2
    meiwa_alignment: int = 2


@dataclass
class EssayAnalysis:
    motivation: MotivationAnalysis
    research: ResearchAnalysis
    school_life: SchoolLifeAnalysis
    future: FutureAnalysis
    overall_score: OverallScore = field(default_factory=OverallScore)
    ai_analyzed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _keyword_score(text: str, keywords: tuple[str, ...]) -> int:
    lowered = text.lower()
    return sum(lowered.count(k) for k in keywords)


def analyze_essay_structure(text: str) -> dict[str, str]:
    """段落ごとにキーワード数の最も多い項目へ振り分ける。"""
    result = {section: "" for section in ESSAY_SECTIONS}
    for paragraph in re.split(r"\n\s*\n", text or ""):
        if len(paragraph.strip()) < MIN_PARAGRAPH_LENGTH:
            continue
        scores = {s: _keyword_score(paragraph, SECTION_KEYWORDS[s]) for s in ESSAY_SECTIONS}
        # 同点なら先に宣言された項目
        best = max(ESSAY_SECTIONS, key=lambda s: scores[s])
        if scores[best] == 0:
            continue
        result[best] = f"{result[best]}\n\n{paragraph}" if result[best] else paragraph
    return result


def extract_research_topic(research_text: str) -> str:
    topics: list[str] = []
    for sentence in re.split(r"[。！？]", research_text or ""):
        for pattern in TOPIC_PATTERNS:
            for match in pattern.findall(sentence):
                topic = match.strip()
                if 2 < len(topic) < 20:
                    topics.append(topic)
    if not topics:
        return DEFAULT_RESEARCH_TOPIC
    # Counter.most_common は同数なら出現順を保つ
    return Counter(topics).most_common(1)[0][0]


def basic_analysis(sections: dict[str, str]) -> EssayAnalysis:
    """AIを使わない基本分析"""
    research = sections.get("research", "")
    return EssayAnalysis(
        motivation=MotivationAnalysis(
            content=sections.get("motivation", ""),
            suggestions=["AI分析が利用できません。基本分析を実行しました。"],
        ),
        research=ResearchAnalysis(
            content=research,
            topic=extract_research_topic(research),
            social_connection="社会" in research or "地域" in research,
            methodology=[k for k in METHOD_KEYWORDS if k in research],
        ),
        school_life=SchoolLifeAnalysis(content=sections.get("school_life", "")),
        future=FutureAnalysis(content=sections.get("future", "")),
    )


def _score(value: Any, default: int) -> int:
    if isinstance(value, (int, float)):
        return int(max(1, min(5, round(value))))
    return default


def _str_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v]
    return []


def merge_ai_analysis(base: EssayAnalysis, data: dict[str, Any]) -> EssayAnalysis:
    """AIの分析結果を基本分析に上書きする。欠けた項目は基本分析のまま。"""
    motivation = data.get("motivation") or {}
    research = data.get("research") or {}
    school_life = data.get("school_life") or {}
    future = data.get("future") or {}
    overall = data.get("overall_score") or {}

    base.motivation.key_points = _str_list(motivation.get("key_points")) or base.motivation.key_points
    base.motivation.strength = _score(motivation.get("strength"), base.motivation.strength)
    base.motivation.suggestions = _str_list(motivation.get("suggestions"))

    base.research.depth = _score(research.get("depth"), base.research.depth)
    if isinstance(research.get("social_connection"), bool):
        base.research.social_connection = research["social_connection"]
    base.research.methodology = _str_list(research.get("methodology")) or base.research.methodology
    base.research.suggestions = _str_list(research.get("suggestions"))

    base.school_life.aspirations = _str_list(school_life.get("aspirations"))
    base.school_life.feasibility = _score(school_life.get("feasibility"), base.school_life.feasibility)
    base.school_life.suggestions = _str_list(school_life.get("suggestions"))

    base.future.goals = _str_list(future.get("goals"))
    base.future.connection = _score(future.get("connection"), base.future.connection)
    base.future.suggestions = _str_list(future.get("suggestions"))

    base.overall_score = OverallScore(
        total=_score(overall.get("total"), 3),
        readiness=_score(overall.get("readiness"), 3),
        meiwa_alignment=_score(overall.get("meiwa_alignment"), 3),
    )
    base.ai_analyzed = True
    return base


async def analyze_with_ai(sections: dict[str, str]) -> EssayAnalysis:
    base = basic_analysis(sections)
    prompt = ESSAY_ANALYSIS_PROMPT.format(
        motivation=sections.get("motivation", ""),
        research=sections.get("research", ""),
        school_life=sections.get("school_life", ""),
        future=sections.get("future", ""),
        research_topic=base.research.topic,
    )
    result = await call_llm_with_error(
        system_prompt=prompt,
        user_message="志願理由書を分析し、JSONで出力してください。",
        max_tokens=1500,
        temperature=0.3,
        feature="essay",
        retry_on_parse=True,
    )
    if not result.success or not result.data:
        reason = result.error.error_type if result.error else "empty"
        logger.warning("[志願理由書分析] AI分析に失敗したため基本分析を返します (%s)", reason)
        return base
    return merge_ai_analysis(base, result.data)


def _authenticity(analysis: EssayAnalysis) -> int:
    score = 3
    if analysis.research.methodology:
        score += 1
    contents = analysis.research.content + analysis.motivation.content
    if any(word in contents for word in EMOTIONAL_WORDS):
        score += 1
    return min(score, 5)


def meiwa_recommendations(analysis: EssayAnalysis) -> list[str]:
    recommendations: list[str] = []
    if analysis.research.depth < 3:
        recommendations.append("探究活動の具体的な方法や過程をより詳しく説明しましょう")
    if not analysis.research.social_connection:
        recommendations.append("探究活動が社会や日常生活とどうつながるかを考えてみましょう")
    if analysis.motivation.strength < 3:
        recommendations.append("なぜその探究テーマを選んだのか、個人的な理由を深掘りしましょう")
    if analysis.future.connection < 3:
        recommendations.append("探究活動を将来どう活かしたいか、具体的な計画を考えましょう")
    recommendations.extend(MEIWA_FIXED_RECOMMENDATIONS)
    return recommendations


def analyze_meiwa_readiness(analysis: EssayAnalysis) -> dict[str, Any]:
    research_focus = analysis.research.depth * 0.6 + (2 if analysis.research.social_connection else 0) * 0.4
    social_awareness = 4 if analysis.research.social_connection else 2
    self_growth = (
        analysis.motivation.strength + analysis.school_life.feasibility + analysis.future.connection
    ) / 3
    authenticity = _authenticity(analysis)
    return {
        "research_focus": round(research_focus, 2),
        "social_awareness": social_awareness,
        "self_growth": round(self_growth, 2),
        "authenticity": authenticity,
        "interview_readiness": round(
            (research_focus + social_awareness + self_growth + authenticity) / 4, 2
        ),
        "recommendations": meiwa_recommendations(analysis),
    }


def extract_interview_keywords(analysis: EssayAnalysis) -> dict[str, Any]:
    research = analysis.research.content
    research_and_future = research + analysis.future.content
    return {
        "research_topic": extract_research_topic(research),
        "key_methods": [k for k in METHOD_KEYWORDS if k in research],
        "challenges": [k for k in CHALLENGE_KEYWORDS if k in research],
        "discoveries": [k for k in DISCOVERY_KEYWORDS if k in research],
        "social_connections": [k for k in SOCIAL_KEYWORDS if k in research_and_future],
    }
