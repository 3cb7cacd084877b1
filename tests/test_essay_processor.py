"""
Essay Processor Tests

志願理由書の項目分類・探究テーマ抽出・準備度分析のテスト。
"""

import pytest

from interview_api.utils.essay_processor import (
    DEFAULT_RESEARCH_TOPIC,
    MEIWA_FIXED_RECOMMENDATIONS,
    analyze_essay_structure,
    analyze_meiwa_readiness,
    analyze_with_ai,
    basic_analysis,
    extract_interview_keywords,
    extract_research_topic,
)
from tests.conftest import llm_ok

MOTIVATION = "私が明和中学校を志望する理由は、探究的な学びに憧れているからです。"
RESEARCH = "メダカの水質について調べています。小学4年生から毎日pHを測定して観察し、水温との関係を発見しました。"
SCHOOL_LIFE = "中学では科学部に入って、友達や先輩と一緒に部活で目標を持って活動したいです。"
FUTURE = "将来は環境を守る仕事について、地域の社会に貢献したいという夢があります。"

ESSAY = "\n\n".join([MOTIVATION, RESEARCH, SCHOOL_LIFE, FUTURE, "よろしくお願いします。"])


class TestEssayStructure:
    """段落の4項目への振り分け"""

    def test_sections(self):
        sections = analyze_essay_structure(ESSAY)
        assert sections == {
            "motivation": MOTIVATION,
            "research": RESEARCH,
            "school_life": SCHOOL_LIFE,
            "future": FUTURE,
        }

    def test_paragraphs_of_same_section_are_joined(self):
        extra = "ほかにも植物の成長を観察する実験をして、光の当て方による違いを調べました。"
        sections = analyze_essay_structure(RESEARCH + "\n\n" + extra)
        assert sections["research"] == RESEARCH + "\n\n" + extra

    def test_empty_text(self):
        assert analyze_essay_structure("") == {
            "motivation": "",
            "research": "",
            "school_life": "",
            "future": "",
        }


class TestResearchTopic:
    """探究テーマの抽出"""

    def test_topic(self):
        assert extract_research_topic(RESEARCH) == "メダカの水質"

    def test_most_common_topic(self):
        text = "ダンスの振付について考えました。光の反射を調べました。ダンスの振付について友達と話しました。"
        assert extract_research_topic(text) == "ダンスの振付"

    def test_default(self):
        assert extract_research_topic("毎日がんばっています") == DEFAULT_RESEARCH_TOPIC


class TestBasicAnalysis:
    """AIを使わない分析"""

    def test_basic_analysis(self):
        analysis = basic_analysis(analyze_essay_structure(ESSAY))
        assert analysis.ai_analyzed is False
        assert analysis.research.topic == "メダカの水質"
        assert analysis.research.methodology == ["観察", "測定"]
        assert analysis.research.social_connection is False

    def test_readiness(self):
        readiness = analyze_meiwa_readiness(basic_analysis(analyze_essay_structure(ESSAY)))
        assert readiness["research_focus"] == 1.2
        assert readiness["social_awareness"] == 2
        assert readiness["self_growth"] == 2.0
        assert readiness["authenticity"] == 4
        assert readiness["interview_readiness"] == 2.3
        assert len(readiness["recommendations"]) == 6
        assert readiness["recommendations"][-2:] == list(MEIWA_FIXED_RECOMMENDATIONS)

    def test_interview_keywords(self):
        keywords = extract_interview_keywords(basic_analysis(analyze_essay_structure(ESSAY)))
        assert keywords["research_topic"] == "メダカの水質"
        assert keywords["key_methods"] == ["観察", "測定"]
        assert keywords["challenges"] == []
        assert keywords["discoveries"] == ["発見"]
        assert keywords["social_connections"] == ["社会", "地域", "環境"]


class TestAnalyzeWithAI:
    """AI分析と基本分析へのフォールバック"""

    @pytest.mark.asyncio
    async def test_falls_back_without_api_key(self, fake_llm):
        analysis = await analyze_with_ai(analyze_essay_structure(ESSAY))
        assert analysis.ai_analyzed is False
        assert analysis.motivation.suggestions == ["AI分析が利用できません。基本分析を実行しました。"]
        assert fake_llm.last["feature"] == "essay"

    @pytest.mark.asyncio
    async def test_merges_ai_result(self, fake_llm):
        fake_llm.respond_with(
            llm_ok(
                {
                    "motivation": {"key_points": ["探究に憧れ"], "strength": 4.6},
                    "research": {"depth": 4, "social_connection": True},
                    "overall_score": {"total": 4},
                }
            )
        )
        analysis = await analyze_with_ai(analyze_essay_structure(ESSAY))
        assert analysis.ai_analyzed is True
        assert analysis.motivation.key_points == ["探究に憧れ"]
        assert analysis.motivation.strength == 5
        assert analysis.research.depth == 4
        assert analysis.research.social_connection is True
        assert analysis.research.methodology == ["観察", "測定"]
        assert analysis.overall_score.total == 4
        assert analysis.overall_score.readiness == 3
