"""
ルールベースの質問フォールバック

AIによる質問生成が失敗した時や使えない時に、直前の回答のキーワードから
面接官らしい質問を組み立てる。どの関数も必ず質問文を返す。
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Sequence

from interview_api.utils.interview_stages import (
    STAGE_EXPLORATION,
    STAGE_FUTURE,
    STAGE_METACOGNITION,
    STAGE_OPENING,
    DeepDiveQuestion,
    last_message,
)

MotivationUsage = Literal["avoid", "consistency_check", "time_filler"]

# 時間埋め質問を使う最低残り時間（秒）
TIME_FILLER_MIN_SECONDS = 120

OPENING_FIRST_QUESTION = "それでは面接を始めます。受検番号と名前を教えてください。"
DEFAULT_FALLBACK_QUESTION = "その活動について、もう少し詳しく教えていただけますか？"
DEFAULT_TIME_FILLER_QUESTION = "最後に、明和中学校でどのような学校生活を送りたいか教えてください。"
NO_HISTORY_EMERGENCY_QUESTION = "それでは、あなたが取り組んでいる活動について教えてください。"

# 回答数に応じた定型の質問（AI失敗・クォータ超過時）
ANSWER_COUNT_QUESTIONS = {
    1: "こちらまではどのような交通手段でいらっしゃいましたか？",
    2: "どのくらいお時間がかかりましたか？",
    3: "それでは本題に入らせていただきます。あなたが取り組んでいる探究学習について教えてください。",
}

DEEP_DIVE_FALLBACK_QUESTIONS = [
    "その活動で困難に感じたことがあれば教えてください。",
    "その取り組みからどのような学びがありましたか？",
    "他の人との協力で印象深いことがあれば聞かせてください。",
    "その経験を今後どのように活かしたいと考えていますか？",
    "活動を通じて発見したことがあれば教えてください。",
]

CONTINUE_PROMPT = "続けてお話しいただけますか？"

EMERGENCY_QUESTIONS = [
    "もう少し詳しく教えていただけますか？",
    "その点について詳しく聞かせてください。",
    "続けてお話しいただけますでしょうか？",
]

GUIDANCE_STYLES = {
    "formal": "丁寧で正式な面接らしい言葉遣い",
    "friendly": "親しみやすく、緊張をほぐすような優しい言葉遣い",
    "encouraging": "受験生を励まし、自信を持たせるような温かい言葉遣い",
}


@dataclass(frozen=True)
class DepthStrategy:
    strategy: str
    focus: str
    question_types: str
    examples: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "focus": self.focus,
            "question_types": self.question_types,
            "examples": list(self.examples),
        }


def get_depth_strategy(depth: int) -> DepthStrategy:
    if depth <= 2:
        return DepthStrategy(
            "基本情報の確認と活動詳細の把握",
            "活動の概要、始めたきっかけ、基本的な取り組み内容",
            "「いつから」「どのような」「なぜ始めた」",
            (
                "その活動はいつ頃から始められたのですか？",
                "最初に始めようと思ったきっかけは何でしたか？",
            ),
        )
    if depth <= 4:
        return DepthStrategy(
            "困難・課題の詳細探求",
            "うまくいかなかった体験、直面した問題、課題への対処",
            "「困ったこと」「大変だったこと」「うまくいかなかった」",
            (
                "その活動で一番困ったことは何でしたか？",
                "思うようにいかなかった時はどう対処しましたか？",
            ),
        )
    if depth <= 6:
        return DepthStrategy(
            "協力・支援関係の探求",
            "周りの人との協力、先生や友達からの支援、チームワーク",
            "「誰と一緒に」「先生に相談」「友達の協力」",
            (
                "それは一人で解決しましたか、それとも誰かと一緒でしたか？",
                "その時、先生や友達からのアドバイスはありましたか？",
            ),
        )
    return DepthStrategy(
        "深層体験・メタ認知の探求",
        "自己変化の実感、学びの本質、継続への意欲",
        "「どう変わった」「何を学んだ」「今後どうしたい」",
        (
            "その体験を通して、自分自身はどのように変わりましたか？",
            "今振り返ってみて、一番大きな学びは何でしたか？",
            "友達と協力する中で、あなた自身が成長したと感じる部分はありますか？",
            "この活動を続けてきて、以前の自分と比べて何が一番変わったと思いますか？",
            "その経験から得た学びを、今後どのように活かしていきたいですか？",
        ),
    )


def should_use_motivation_questions(
    stage: str,
    depth: int,
    conversation_length: int = 0,
    time_remaining: int = 0,
) -> MotivationUsage:
    """志願理由書ベースの質問を使うか。探究活動の深掘り中は使わない。"""
    if stage == STAGE_OPENING or (stage == STAGE_EXPLORATION and depth < 7):
        return "avoid"
    if stage == STAGE_EXPLORATION:
        return "consistency_check"
    if stage in (STAGE_METACOGNITION, STAGE_FUTURE) and time_remaining > TIME_FILLER_MIN_SECONDS:
        return "time_filler"
    return "avoid"


def _acknowledgement(last_response: str) -> str:
    """直前の回答（交通手段・時間）に合わせた相槌。"""
    if "時間" in last_response or "分" in last_response:
        if "1時間半" in last_response or "90分" in last_response:
            return "1時間半ですか、遠くからお疲れさまでした。"
        if "30分" in last_response:
            return "30分ですか、ちょうど良い距離ですね。"
        if "10分" in last_response or "15分" in last_response:
            return "お近くですね。"
        return "そうですか。"
    if "電車" in last_response:
        return "電車でお疲れさまでした。"
    if "自転車" in last_response:
        return "自転車でいらしたんですね。"
    if "車" in last_response:
        return "お車でお疲れさまでした。"
    if "歩い" in last_response:
        return "歩いていらしたんですね。"
    return ""


def _with_prefix(prefix: str, body: str) -> str:
    return f"{prefix} {body}" if prefix else body


def build_fallback_question(question: Optional[DeepDiveQuestion], history: Sequence[Any]) -> str:
    """質問のガイダンスのトピックと直前の回答から質問文を組み立てる。"""
    last_response = last_message(history, student=True) or ""
    prefix = _acknowledgement(last_response)
    topic = question.guidance.topic if question else ""

    if "面接開始" in topic:
        return OPENING_FIRST_QUESTION
    if "交通手段" in topic:
        return _with_prefix(prefix, "こちらまでは何で来られましたか？")
    if "所要時間" in topic:
        return _with_prefix(prefix, "どれくらい時間がかかりましたか？")
    if "探究活動" in topic and "概要" in topic:
        return _with_prefix(
            prefix,
            "それでは、あなたが取り組んでいる探究活動について、1分ほどで説明してください。",
        )

    if "ダンス" in last_response or "振付" in last_response:
        return "ダンスでの取り組み、素晴らしいですね。練習で一番困ったことはどのようなことでしたか？"
    if "メダカ" in last_response or "水質" in last_response:
        return "メダカの飼育、継続されているのは立派ですね。水質管理で苦労したことはありませんでしたか？"
    if "委員会" in last_response:
        return "委員会活動を続けられているんですね。その中で特に印象に残った出来事はありますか？"
    return DEFAULT_FALLBACK_QUESTION


def answer_count_fallback(student_answer_count: int) -> str:
    """回答数だけで決まる定型の質問。"""
    if student_answer_count in ANSWER_COUNT_QUESTIONS:
        return ANSWER_COUNT_QUESTIONS[student_answer_count]
    if student_answer_count >= 4:
        index = min(student_answer_count - 4, len(DEEP_DIVE_FALLBACK_QUESTIONS) - 1)
        return DEEP_DIVE_FALLBACK_QUESTIONS[index]
    return CONTINUE_PROMPT


def continuous_deep_dive_fallback(keywords: Sequence[str], depth: int) -> str:
    """連続深掘り用。7層目以降は自己変容・学びへ、それまでは困難・工夫へ向ける。"""
    if depth >= 7:
        if any(kw in ("友達", "一緒", "仲間", "みんな") for kw in keywords):
            return "その友達との協力を通して、あなた自身が成長したと感じる部分はありますか？"
        if any(kw in ("メダカ", "記録", "観察") for kw in keywords):
            return "メダカの観察記録を続けてきた体験を通して、自分自身はどのように変わったと思いますか？"
        if any(kw in ("環境委員会", "活動", "委員会") for kw in keywords):
            return "この環境委員会での活動を続けてきて、以前の自分と比べて何が一番変わったと思いますか？"
        if keywords:
            return f"その{keywords[0]}の経験から得た学びを、今後どのように活かしていきたいですか？"
        return "この体験全体を振り返って、一番大きな学びや成長は何でしたか？"

    if "メダカ" in keywords and "pH" in keywords:
        return "pH値の管理をされているんですね。実際に数値が思うようにならなかった時、どのような工夫をされましたか？"
    if "ダンス" in keywords and "振付" in keywords:
        return "チームダンスの振付合わせ、大変でしたね。メンバー同士で意見が分かれた時はどう解決しましたか？"
    if "困った" in keywords or "大変" in keywords:
        return "その困難を乗り越える時、一番支えになったのは何でしたか？"
    if keywords:
        first = keywords[0]
        if first in ("友達", "仲間", "みんな"):
            return "その活動で、周りの方との協力はどのような感じでしたか？"
        if first in ("記録", "観察", "測定"):
            return f"{first}を続ける中で、一番困ったことや工夫したことはありませんでしたか？"
        return f"その{first}の経験で、一番印象に残ったのはどのような点でしたか？"
    return "その体験の中で、一番印象に残った発見や気づきは何でしたか？"


def inquiry_deep_dive_fallback(last_response: str) -> str:
    last_response = last_response or ""
    if "ダンス" in last_response and "振付" in last_response:
        return "振付にばらつきがあった時、チームの中でどのような話し合いをしましたか？"
    if "メダカ" in last_response and "pH" in last_response:
        return "pH値の測定をされているんですね。測定の結果、予想と違った数値が出た時はどのような対処をしましたか？"
    if "環境委員会" in last_response:
        return "環境委員会での活動、継続されているのは素晴らしいですね。その中で一番困ったことや大変だったことは何でしたか？"
    if "観察" in last_response or "記録" in last_response:
        return "観察記録を続けられているんですね。記録をつける中で、予想と違った結果が出たことはありませんでしたか？"
    return "その探究活動を続ける中で、一番印象に残った困難や発見はどのようなものでしたか？"


def guidance_fallback(last_response: str) -> str:
    last_response = last_response or ""
    if "ダンス" in last_response or "振付" in last_response:
        return "ダンスの練習で、チームメンバーと意見が合わない時はどのように解決しましたか？"
    if "メダカ" in last_response or "水質" in last_response:
        return "メダカの飼育で、うまくいかなかった時はどのような工夫をしましたか？"
    if "環境委員会" in last_response or "委員会" in last_response:
        return "委員会活動で、一番やりがいを感じたのはどのような時でしたか？"
    return "その活動の中で、予想と違った結果が出た時はどう対処しましたか？"


INQUIRY_DETAIL_WORDS = ("環境委員会", "メダカ", "水質", "pH", "植物", "観察", "小学", "記録")


def forced_exploration_question(last_response: str) -> Optional[str]:
    """探究活動を詳しく説明した長めの回答には必ず深掘りで返す。該当しなければ None。"""
    last_response = last_response or ""
    if len(last_response) <= 50 or not any(w in last_response for w in INQUIRY_DETAIL_WORDS):
        return None
    if "メダカ" in last_response and "pH" in last_response:
        return "メダカの水質管理をされているんですね。pH値を調べる中で、一番困ったことや大変だったことはありませんでしたか？"
    if "植物" in last_response and "観察" in last_response:
        return "植物の育成過程を観察記録されているんですね。その観察の中で、予想と違った結果が出たことはありませんでしたか？"
    if "環境委員会" in last_response:
        return "環境委員会での活動、素晴らしいですね。その活動を続ける中で、一番印象に残った発見や気づきはありましたか？"
    return "その探究活動の中で、一番困ったことや大変だったことはありませんでしたか？"


def time_filler_topics(essay: dict[str, Optional[str]]) -> list[tuple[str, str]]:
    """(ラベル, 記述) のうち10文字を超えるもの。"""
    topics = [
        ("学校研究", essay.get("research") or ""),
        ("学校生活への期待", essay.get("school_life") or ""),
        ("将来の夢", essay.get("future") or ""),
    ]
    return [(label, content) for label, content in topics if len(content) > 10]


def emergency_question(history: Sequence[Any]) -> str:
    """AI・ルールのどちらも失敗した時の最終質問。"""
    if not history:
        return NO_HISTORY_EMERGENCY_QUESTION
    last = history[-1]
    last_response = (last.get("content") if isinstance(last, dict) else getattr(last, "content", "")) or ""
    if "メダカ" in last_response or "環境委員会" in last_response:
        return "その活動を続ける中で、一番印象に残った体験は何でしたか？"
    if "友達" in last_response or "一緒" in last_response:
        return "友達と協力する中で、どのような発見がありましたか？"
    return "その体験から、どのようなことを学びましたか？"


def random_emergency_question(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(EMERGENCY_QUESTIONS)
