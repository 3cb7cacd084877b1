"""
Answer Check Tests

ふざけた回答・言いかけ・質問とのずれ・否定疑問の解釈のテスト。
"""

import random

import pytest

from interview_api.utils.answer_checks import (
    SERIOUS_REMINDER_PREFIX,
    check_answer_alignment,
    check_joking_answer,
    clarification_fallbacks,
    detect_negative_question,
    get_misalignment_reason,
    interpret_negative_response,
    is_incomplete_answer,
    pick_serious_fallback,
    serious_fallback_variations,
    serious_reminder,
)


class TestJokingAnswer:
    """ふざけた回答の検出"""

    @pytest.mark.parametrize(
        "answer",
        [
            "どこでもドアで来ました",
            "ピカチュウと一緒に来ました",
            "メダカがしゃべって教えてくれました",
            "宇宙から来ました",
            "あはは、わかりません",
        ],
    )
    def test_joke_patterns(self, answer):
        assert check_joking_answer("受検番号と名前を教えてください。", answer) is True

    def test_serious_answer_passes(self):
        assert check_joking_answer("受検番号と名前を教えてください。", "受検番号12番の山田太郎です。") is False

    def test_meaningless_short_answer(self):
        assert check_joking_answer("名前を教えてください。", "うーん") is True

    def test_meaningful_short_answer(self):
        assert check_joking_answer("名前を教えてください。", "はい") is False

    def test_transport_context(self):
        question = "今日はどうやって来ましたか？"
        assert check_joking_answer(question, "瞬間移動で来ました") is True
        assert check_joking_answer(question, "お父さんの車で来ました") is False

    @pytest.mark.parametrize(
        "question,answer",
        [
            ("こちらまでは何で来られましたか？", "ドラえもんのタケコプターで来ました"),
            ("どれくらい時間がかかりましたか？", "ロケットに乗ってきたので一瞬でした"),
            ("こちらまでは何で来られましたか？", "あ"),
        ],
    )
    def test_context_check_keeps_other_signals(self, question, answer):
        # 質問の種類ごとの判定に当たらなくても、ふざけた表現や意味のない短い回答は検出する
        assert check_joking_answer(question, answer) is True

    def test_inquiry_context_flags_entertainment(self):
        assert check_joking_answer("探究活動について教えてください。", "毎日YouTubeを見ることです") is True

    def test_single_w_in_words_is_not_slang(self):
        assert check_joking_answer("名前を教えてください。", "I like Wednesday and walking every day") is False

    def test_symbol_only(self):
        assert check_joking_answer("名前を教えてください。", "！？") is True


class TestIncompleteAnswer:
    """言いかけの回答"""

    @pytest.mark.parametrize("answer", ["練習を頑張りました。そして", "失敗したので", "その度に  "])
    def test_incomplete(self, answer):
        assert is_incomplete_answer(answer) is True

    def test_complete(self):
        assert is_incomplete_answer("毎日練習を続けました。") is False


class TestSeriousReminder:
    """真剣な回答を促す文"""

    def test_reminder_repeats_question(self):
        assert serious_reminder("何で来ましたか？") == SERIOUS_REMINDER_PREFIX + "何で来ましたか？"

    def test_variations_quote_long_answer(self):
        answer = "ドラえもんのどこでもドアを使って家から一瞬で来ました"
        variations = serious_fallback_variations(answer)
        assert len(variations) == 7
        assert f"「{answer[:18]}...」" in variations[5]

    def test_pick_is_one_of_variations(self):
        answer = "魔法で来ました"
        picked = pick_serious_fallback(answer, random.Random(0))
        assert picked in serious_fallback_variations(answer)


class TestAnswerAlignment:
    """質問と回答のずれ"""

    def test_time_question_without_time(self):
        assert check_answer_alignment("どれくらいかかりましたか？", "お母さんと一緒に楽しく来ることができました") is True

    def test_time_question_with_time(self):
        assert check_answer_alignment("どれくらいかかりましたか？", "電車で30分くらいかかりました") is False

    def test_difficulty_answered_with_enjoyment(self):
        question = "練習で困ったことは何ですか？"
        answer = "みんなで踊って楽しかったです"
        assert check_answer_alignment(question, answer) is True
        assert get_misalignment_reason(question, answer) == "困難を聞かれているのに困難の説明なし"

    def test_effort_answered_with_feeling_only(self):
        question = "どのような工夫をしましたか？"
        answer = "メダカがとても可愛いと感じたし、毎日見ていて癒されると思った"
        assert check_answer_alignment(question, answer) is True
        assert get_misalignment_reason(question, answer) == "工夫を聞かれているのに感想のみ"

    def test_short_answer_to_detail_request(self):
        assert check_answer_alignment("詳しく教えてください。", "はい") is True

    def test_movie_clarification_is_specific(self):
        fallbacks = clarification_fallbacks("pH値の測定方法を教えてください。", "映画を見ました")
        assert len(fallbacks) == 1
        assert "pH値の測定方法" in fallbacks[0]

    def test_generic_clarification_uses_topic(self):
        fallbacks = clarification_fallbacks("困ったことは何ですか？", "楽しかったです")
        assert any("困ったことについて" in f for f in fallbacks)


class TestNegativeQuestion:
    """否定疑問への回答の解釈"""

    def test_detect(self):
        assert detect_negative_question("その探究には決まった正解がないか？") is True
        assert detect_negative_question("正解はありませんか？") is True
        assert detect_negative_question("正解はありますか？") is False

    def test_yes_means_no_answer(self):
        result = interpret_negative_response("はい、そうです", True)
        assert result.actual_meaning == "（正解は）ない"
        assert result.needs_clarification is False

    def test_no_means_there_is_an_answer(self):
        result = interpret_negative_response("いいえ、ちがいます", True)
        assert result.actual_meaning == "（正解は）ある"

    def test_ambiguous_needs_clarification(self):
        result = interpret_negative_response("どうでしょう", True)
        assert result.needs_clarification is True
        assert result.confidence == 0.3

    def test_not_negative_question_keeps_response(self):
        result = interpret_negative_response("はい", False)
        assert result.actual_meaning == "はい"
        assert result.needs_clarification is False
