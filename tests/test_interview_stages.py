"""
Interview Stage Tests

ステージ遷移・パターン選択・質問チェーンのテスト。
"""

import pytest

from interview_api.utils.interview_stages import (
    PATTERN_ARTISTIC,
    PATTERN_SCIENTIFIC,
    STAGE_COMPLETED,
    STAGE_EXPLORATION,
    STAGE_FUTURE,
    STAGE_METACOGNITION,
    STAGE_OPENING,
    ConversationPair,
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
    stage_for_depth,
)
from tests.conftest import conversation


def _pairs(n: int, response: str = "回答です") -> list[ConversationPair]:
    return [ConversationPair(f"質問{i}", response) for i in range(n)]


class TestSelectInterviewPattern:
    """探究活動の記述からのパターン選択"""

    def test_empty_text_defaults_to_artistic(self):
        assert select_interview_pattern("") == PATTERN_ARTISTIC
        assert select_interview_pattern(None) == PATTERN_ARTISTIC

    def test_dance_is_artistic(self):
        assert select_interview_pattern("友達とダンスの振付を考えています") == PATTERN_ARTISTIC

    def test_science_keywords_select_scientific(self):
        text = "メダカを飼育して、水質やpHを測定しています"
        assert select_interview_pattern(text) == PATTERN_SCIENTIFIC

    def test_tie_stays_artistic(self):
        # 科学系が上回った時だけ科学探究型
        assert select_interview_pattern("音楽と実験") == PATTERN_ARTISTIC

    def test_no_keywords_defaults_to_artistic(self):
        assert select_interview_pattern("地域のごみ拾いをしています") == PATTERN_ARTISTIC


class TestQuestionChain:
    """質問チェーンの生成と選択"""

    def test_opening_chain_has_three_questions(self):
        chain = generate_question_chain(PATTERN_ARTISTIC, STAGE_OPENING)
        assert [q.id for q in chain.questions] == ["opening_1", "opening_2", "opening_3"]
        assert chain.transition is not None
        assert chain.transition.min_depth == 3

    def test_exploration_transition_is_held(self):
        chain = generate_question_chain(PATTERN_ARTISTIC, STAGE_EXPLORATION)
        assert chain.transition.min_depth == 7
        assert chain.transition.transition_depth == 10

    def test_every_pattern_covers_active_stages(self):
        for pattern in (PATTERN_ARTISTIC, PATTERN_SCIENTIFIC):
            for stage in (STAGE_OPENING, STAGE_EXPLORATION, STAGE_METACOGNITION, STAGE_FUTURE):
                assert generate_question_chain(pattern, stage).questions

    def test_completed_has_no_questions(self):
        chain = generate_question_chain(PATTERN_ARTISTIC, STAGE_COMPLETED)
        assert chain.questions == []
        assert select_next_question(chain, 0) is None

    def test_unknown_pattern_raises(self):
        with pytest.raises(KeyError):
            generate_question_chain("unknown_pattern", STAGE_OPENING)

    def test_select_next_question_clamps_to_last(self):
        chain = generate_question_chain(PATTERN_ARTISTIC, STAGE_OPENING)
        assert select_next_question(chain, 0).id == "opening_1"
        assert select_next_question(chain, 2).id == "opening_3"
        assert select_next_question(chain, 10).id == "opening_3"

    def test_exploration_first_question_has_preparation_time(self):
        chain = generate_question_chain(PATTERN_SCIENTIFIC, STAGE_EXPLORATION)
        first = select_next_question(chain, 0)
        assert first.id == "sci_1"
        assert first.preparation_time == 60

    def test_find_question(self):
        assert find_question(PATTERN_ARTISTIC, "art_2").guidance.topic == "探究活動を始めたきっかけ"
        assert find_question(PATTERN_ARTISTIC, "sci_2") is None


class TestFollowUpTriggers:
    """回答に応じた次の質問"""

    def test_transport_answer_triggers_travel_time(self):
        opening_2 = find_question(PATTERN_ARTISTIC, "opening_2")
        trigger = next_question_by_trigger(opening_2, "電車で来ました")
        assert trigger is not None
        assert trigger.next_question_id == "opening_3"

    def test_no_match_returns_none(self):
        opening_2 = find_question(PATTERN_ARTISTIC, "opening_2")
        assert next_question_by_trigger(opening_2, "よく覚えていません") is None


class TestStageTransition:
    """回答数によるステージ遷移"""

    @pytest.mark.parametrize(
        "stage,answered,expected",
        [
            (STAGE_OPENING, 2, None),
            (STAGE_OPENING, 3, STAGE_EXPLORATION),
            (STAGE_EXPLORATION, 6, None),
            # 探究活動は7回答で遷移可能になるが、深掘りと齟齬確認が終わる10回答まで続ける
            (STAGE_EXPLORATION, 7, None),
            (STAGE_EXPLORATION, 9, None),
            (STAGE_EXPLORATION, 10, STAGE_METACOGNITION),
            (STAGE_METACOGNITION, 12, None),
            (STAGE_METACOGNITION, 13, STAGE_FUTURE),
            (STAGE_FUTURE, 14, None),
            (STAGE_FUTURE, 15, STAGE_COMPLETED),
            (STAGE_COMPLETED, 20, None),
        ],
    )
    def test_thresholds(self, stage, answered, expected):
        assert check_stage_transition(stage, _pairs(answered)) == expected

    def test_blank_answers_are_not_counted(self):
        pairs = _pairs(2) + [ConversationPair("質問", "   ")]
        assert count_answered(pairs) == 2
        assert check_stage_transition(STAGE_OPENING, pairs) is None

    @pytest.mark.parametrize(
        "depth,stage",
        [
            (0, STAGE_OPENING),
            (3, STAGE_EXPLORATION),
            (8, STAGE_EXPLORATION),
            (10, STAGE_METACOGNITION),
            (13, STAGE_FUTURE),
            (15, STAGE_COMPLETED),
        ],
    )
    def test_stage_for_depth(self, depth, stage):
        assert stage_for_depth(depth) == stage


class TestConversationHelpers:
    """会話履歴のペア化と集計"""

    def test_pairs_are_interviewer_then_student(self):
        history = [{"role": "student", "content": "先走った発言"}] + conversation(
            ("名前を教えてください。", "山田です。"),
            ("何で来ましたか？", "電車です。"),
        )
        pairs = build_conversation_pairs(history)
        assert [p.response for p in pairs] == ["山田です。", "電車です。"]

    def test_count_student_answers_skips_empty(self):
        history = conversation(("質問1", "回答1"), ("質問2", "  "))
        assert count_student_answers(history) == 1

    def test_last_message(self):
        history = conversation(("質問1", "回答1"), ("質問2", "回答2"))
        assert last_message(history, student=True) == "回答2"
        assert last_message(history, student=False) == "質問2"
        assert last_message([], student=True) is None
