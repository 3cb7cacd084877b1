"""
Response Analysis & Deep Dive Tests

回答分析・キーワード分類・深掘り戦略と質問生成のテスト。
"""

import pytest

from interview_api.utils.deep_dive import (
    CONFIDENCE_TEMPLATE_ERROR,
    CONFIDENCE_TEMPLATE_NO_KEY,
    CONFIDENCE_TEMPLATE_PARSE_FAILED,
    CONFIDENCE_TEXT_EXTRACTED,
    DeepDiveTemplateSelector,
    build_templates,
    determine_deep_dive_strategy,
    generate_deep_dive_question,
)
from interview_api.utils.response_analyzer import (
    KeywordAnalysis,
    analyze_keywords,
    analyze_response,
    assess_depth,
    extract_continuity_keywords,
)
from tests.conftest import llm_error, llm_text

FILLER = "毎日水槽の様子を観察して記録をつけました。"

INQUIRY_ANSWER = "小学4年生の時から環境委員会でメダカを観察して、友達と一緒に記録しています。大変だったけど楽しい"


class TestAnalyzeResponse:
    """回答の深さとラベル"""

    def test_labels(self):
        analysis = analyze_response("最初は水の濁りで困ったけど、先生に相談して工夫しました。毎日続けることが大切だと学んだ")
        assert analysis.depth == "moderate"
        assert analysis.elements == ["きっかけ", "困難", "解決策", "学び", "協働", "継続意欲"]
        assert analysis.emotions == ["difficulty"]
        assert analysis.difficulties == []
        assert analysis.solutions == ["他者サポート", "方法論改善"]
        assert analysis.learnings == ["価値観形成"]

    def test_empty_response(self):
        analysis = analyze_response("")
        assert analysis.depth == "surface"
        assert analysis.elements == []

    def test_depth_levels(self):
        assert assess_depth("はい") == "surface"
        assert assess_depth("例えば" + FILLER * 3) == "deep"
        assert assess_depth("具体的に言うと、例えば嬉しい発見がありました。" + FILLER * 4) == "profound"

    def test_long_answer_without_specifics_is_moderate(self):
        assert assess_depth(FILLER * 3) == "moderate"


class TestKeywords:
    """連続性キーワードと深掘り用のキーワード分類"""

    def test_continuity_keywords_keep_order(self):
        keywords = extract_continuity_keywords("メダカのpHを測定して、困ったときは先生に相談しました")
        assert keywords == ["メダカ", "pH", "測定", "困った", "先生"]

    def test_analyze_keywords(self):
        analysis = analyze_keywords(INQUIRY_ANSWER)
        assert analysis.primary == ["環境委員会", "メダカ"]
        assert analysis.secondary == ["観察", "記録"]
        assert analysis.emotions == ["楽しい", "大変"]
        assert analysis.time_frames == ["小学4年生"]
        assert analysis.difficulties == ["大変"]
        assert analysis.collaborators == ["友達", "一緒"]


class TestDeepDiveStrategy:
    """深さとキーワードによる戦略"""

    def test_shallow_is_process(self):
        strategy = determine_deep_dive_strategy(analyze_keywords(INQUIRY_ANSWER), 2)
        assert strategy.question_type == "process"
        assert strategy.focus_areas == ["環境委員会", "メダカ", "観察", "記録"]

    def test_middle_prefers_difficulty(self):
        strategy = determine_deep_dive_strategy(analyze_keywords(INQUIRY_ANSWER), 5)
        assert strategy.question_type == "difficulty"
        assert strategy.urgency == "high"

    def test_middle_falls_back_to_emotion(self):
        strategy = determine_deep_dive_strategy(KeywordAnalysis(emotions=["楽しい"]), 5)
        assert strategy.question_type == "emotion"
        assert strategy.focus_areas == ["楽しい"]

    def test_deep_collaboration_or_learning(self):
        assert determine_deep_dive_strategy(analyze_keywords(INQUIRY_ANSWER), 8).question_type == "collaboration"
        learning = determine_deep_dive_strategy(KeywordAnalysis(), 8)
        assert learning.question_type == "learning"
        assert learning.focus_areas == ["学び", "発見", "成長"]


class TestTemplateSelector:
    """使用回数の少ないテンプレートから選ぶ"""

    def test_rotates_through_templates(self):
        analysis = analyze_keywords(INQUIRY_ANSWER)
        strategy = determine_deep_dive_strategy(analysis, 2)
        selector = DeepDiveTemplateSelector()
        picked = [selector.select(analysis, strategy) for _ in range(4)]
        assert len(set(picked[:3])) == 3
        assert picked[3] == picked[0]
        assert selector.stats() == {
            "distinct_templates": 3,
            "total_selections": 4,
            "avg_usage_per_template": 4 / 3,
        }

    def test_templates_use_keywords(self):
        templates = build_templates(analyze_keywords(INQUIRY_ANSWER))
        assert templates["process"][0].startswith("環境委員会について")
        assert set(templates) == {"process", "difficulty", "emotion", "collaboration", "learning", "future"}


class TestGenerateDeepDiveQuestion:
    """AIによる深掘り質問とテンプレートへのフォールバック"""

    @pytest.mark.asyncio
    async def test_without_api_key_returns_template(self, fake_llm):
        analysis = analyze_keywords(INQUIRY_ANSWER)
        result = await generate_deep_dive_question("質問", INQUIRY_ANSWER, analysis, 2, DeepDiveTemplateSelector())
        assert result.question == build_templates(analysis)["process"][0]
        assert result.confidence == CONFIDENCE_TEMPLATE_NO_KEY
        assert fake_llm.last["response_format"] == "text"

    @pytest.mark.asyncio
    async def test_ai_json_question(self, fake_llm):
        fake_llm.respond_with(
            llm_text('{"question": "メダカの観察で一番驚いたことは何ですか？", "confidence": 0.9, "reasoning": "感情に焦点"}')
        )
        result = await generate_deep_dive_question("質問", INQUIRY_ANSWER, analyze_keywords(INQUIRY_ANSWER), 5)
        assert result.question == "メダカの観察で一番驚いたことは何ですか？"
        assert result.confidence == 0.9
        assert result.reasoning == "感情に焦点"
        assert result.strategy.question_type == "difficulty"

    @pytest.mark.asyncio
    async def test_question_extracted_from_broken_text(self, fake_llm):
        fake_llm.respond_with(llm_text('回答: "question": "どうやってpHを測りましたか？" 以上'))
        result = await generate_deep_dive_question("質問", INQUIRY_ANSWER, analyze_keywords(INQUIRY_ANSWER), 2)
        assert result.question == "どうやってpHを測りましたか？"
        assert result.confidence == CONFIDENCE_TEXT_EXTRACTED

    @pytest.mark.asyncio
    async def test_unparseable_text_uses_template(self, fake_llm):
        fake_llm.respond_with(llm_text("よくわかりませんでした"))
        result = await generate_deep_dive_question(
            "質問", INQUIRY_ANSWER, analyze_keywords(INQUIRY_ANSWER), 2, DeepDiveTemplateSelector()
        )
        assert result.confidence == CONFIDENCE_TEMPLATE_PARSE_FAILED
        assert result.reasoning == "フォールバックテンプレート使用"

    @pytest.mark.asyncio
    async def test_provider_error_uses_template(self, fake_llm):
        fake_llm.respond_with(llm_error("rate_limit"))
        result = await generate_deep_dive_question("質問", INQUIRY_ANSWER, analyze_keywords(INQUIRY_ANSWER), 8)
        assert result.confidence == CONFIDENCE_TEMPLATE_ERROR
        assert result.reasoning.startswith("エラーフォールバック")
        assert result.strategy.question_type == "collaboration"
