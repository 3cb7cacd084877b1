"""
Fallback Question Tests

AIが使えない時のルールベース質問のテスト。
"""

import random

import pytest

from interview_api.utils.fallback_questions import (
    CONTINUE_PROMPT,
    DEEP_DIVE_FALLBACK_QUESTIONS,
    DEFAULT_FALLBACK_QUESTION,
    EMERGENCY_QUESTIONS,
    NO_HISTORY_EMERGENCY_QUESTION,
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
from interview_api.utils.interview_stages import PATTERN_ARTISTIC, find_question
from tests.conftest import conversation


class TestDepthStrategy:
    """深掘り層ごとの戦略"""

    @pytest.mark.parametrize(
        "depth,strategy",
        [
            (1, "基本情報の確認と活動詳細の把握"),
            (3, "困難・課題の詳細探求"),
            (5, "協力・支援関係の探求"),
            (8, "深層体験・メタ認知の探求"),
        ],
    )
    def test_strategy_by_depth(self, depth, strategy):
        assert get_depth_strategy(depth).strategy == strategy

    def test_deep_layer_has_five_examples(self):
        data = get_depth_strategy(9).to_dict()
        assert len(data["examples"]) == 5
        assert isinstance(data["examples"], list)


class TestMotivationUsage:
    """志願理由書ベースの質問を使うかどうか"""

    @pytest.mark.parametrize(
        "stage,depth,time_remaining,expected",
        [
            ("opening", 5, 600, "avoid"),
            ("exploration", 5, 600, "avoid"),
            ("exploration", 7, 600, "consistency_check"),
            ("metacognition", 8, 300, "time_filler"),
            ("future", 10, 60, "avoid"),
            ("completed", 12, 600, "avoid"),
        ],
    )
    def test_usage(self, stage, depth, time_remaining, expected):
        assert should_use_motivation_questions(stage, depth, time_remaining=time_remaining) == expected


class TestBuildFallbackQuestion:
    """ガイダンスのトピックと直前の回答からの質問"""

    def test_opening_first(self):
        question = find_question(PATTERN_ARTISTIC, "opening_1")
        assert build_fallback_question(question, []) == OPENING_FIRST_QUESTION

    def test_transport_without_acknowledgement(self):
        question = find_question(PATTERN_ARTISTIC, "opening_2")
        history = conversation(("受検番号と名前を教えてください。", "12番の山田です。"))
        assert build_fallback_question(question, history) == "こちらまでは何で来られましたか？"

    def test_travel_time_acknowledges_train(self):
        question = find_question(PATTERN_ARTISTIC, "opening_3")
        history = conversation(("何で来られましたか？", "電車で来ました"))
        assert build_fallback_question(question, history) == "電車でお疲れさまでした。 どれくらい時間がかかりましたか？"

    def test_inquiry_overview_acknowledges_time(self):
        question = find_question(PATTERN_ARTISTIC, "art_1")
        history = conversation(("どれくらいかかりましたか？", "30分くらいです"))
        text = build_fallback_question(question, history)
        assert text.startswith("30分ですか、ちょうど良い距離ですね。 ")
        assert "1分ほどで説明してください" in text

    def test_keyword_from_last_answer(self):
        history = conversation(("きっかけは？", "友達とダンスの振付を考えたことです"))
        assert build_fallback_question(None, history).startswith("ダンスでの取り組み")

    def test_default(self):
        history = conversation(("きっかけは？", "なんとなくです"))
        assert build_fallback_question(None, history) == DEFAULT_FALLBACK_QUESTION


class TestAnswerCountFallback:
    """回答数だけで決まる定型質問"""

    def test_opening_counts(self):
        assert "交通手段" in answer_count_fallback(1)
        assert "お時間" in answer_count_fallback(2)
        assert "探究学習" in answer_count_fallback(3)

    def test_deep_dive_counts_clamp(self):
        assert answer_count_fallback(4) == DEEP_DIVE_FALLBACK_QUESTIONS[0]
        assert answer_count_fallback(20) == DEEP_DIVE_FALLBACK_QUESTIONS[-1]

    def test_zero(self):
        assert answer_count_fallback(0) == CONTINUE_PROMPT


class TestContinuousDeepDiveFallback:
    """連続深掘り用のフォールバック"""

    def test_deep_layer_friend(self):
        assert "成長" in continuous_deep_dive_fallback(["友達"], 8)

    def test_deep_layer_without_keywords(self):
        assert continuous_deep_dive_fallback([], 8) == "この体験全体を振り返って、一番大きな学びや成長は何でしたか？"

    def test_shallow_medaka_ph(self):
        assert continuous_deep_dive_fallback(["メダカ", "pH"], 3).startswith("pH値の管理")

    def test_shallow_record(self):
        assert continuous_deep_dive_fallback(["記録"], 3).startswith("記録を続ける中で")

    def test_shallow_without_keywords(self):
        assert continuous_deep_dive_fallback([], 2) == "その体験の中で、一番印象に残った発見や気づきは何でしたか？"


class TestInquiryFallbacks:
    """探究活動の回答に対する深掘り"""

    def test_inquiry_deep_dive(self):
        assert "pH値の測定" in inquiry_deep_dive_fallback("メダカの水槽のpHを測っています")
        assert inquiry_deep_dive_fallback("").startswith("その探究活動を続ける中で")

    def test_guidance_fallback(self):
        assert guidance_fallback("メダカを飼っています").startswith("メダカの飼育")
        assert guidance_fallback("") == "その活動の中で、予想と違った結果が出た時はどう対処しましたか？"

    def test_forced_exploration_needs_long_detailed_answer(self):
        assert forced_exploration_question("メダカとpHです") is None
        long_answer = "小学4年生の時から、教室でメダカを飼育していて、毎日水槽の水のpHを試験紙で測って記録しています。水温も一緒に調べています。"
        assert len(long_answer) > 50
        assert forced_exploration_question(long_answer).startswith("メダカの水質管理")

    def test_forced_exploration_ignores_unrelated_long_answer(self):
        answer = "休みの日は家族と一緒に公園へ行って、サッカーをしたりバドミントンをしたりして過ごすことが多く、とても楽しい時間です。"
        assert forced_exploration_question(answer) is None


class TestTimeFillerAndEmergency:
    """時間埋め・最終手段の質問"""

    def test_time_filler_topics_skip_short_entries(self):
        essay = {
            "research": "短い",
            "school_life": "部活動と勉強を両立させて友達をたくさん作りたいです",
            "future": None,
        }
        topics = time_filler_topics(essay)
        assert [label for label, _ in topics] == ["学校生活への期待"]

    def test_emergency_without_history(self):
        assert emergency_question([]) == NO_HISTORY_EMERGENCY_QUESTION

    def test_emergency_uses_last_message(self):
        history = conversation(("誰とやりましたか？", "友達と一緒にやりました"))
        assert emergency_question(history) == "友達と協力する中で、どのような発見がありましたか？"

    def test_random_emergency(self):
        assert random_emergency_question(random.Random(1)) in EMERGENCY_QUESTIONS
