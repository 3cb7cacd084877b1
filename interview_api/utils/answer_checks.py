"""
受検生の回答チェック

- ふざけた回答・意味のない回答の検出
- 言いかけで終わった回答の検出
- 質問と噛み合っていない回答の検出と理由付け
- 否定形の質問（「〜ないか？」）への はい/いいえ の解釈
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Optional

# ===== ふざけた回答 =====
JOKING_PATTERNS = [
    re.compile(r"どこでもドア|タイムマシン|ワープ|テレポート|瞬間移動|魔法|忍術|超能力"),
    re.compile(r"ドラえもん|ポケモン|マリオ|ピカチュウ|悟空|ナルト|ルフィ|コナン"),
    re.compile(r"ゲーム|プレステ|スイッチ|DS|ファミコン|スマホゲーム"),
    re.compile(r"映画|テレビ|YouTube|TikTok|Netflix|アニメ|漫画|小説|音楽鑑賞|ドラマ"),
    re.compile(r"空を飛んで|飛行機で家から|ロケット|UFO|宇宙船|竜|ドラゴン|ペガサス|ユニコーン"),
    re.compile(r"走って1分|光の速度|音速|時速1000|瞬間移動|ワープして"),
    re.compile(r"パンに乗って|お寿司で|ラーメンで|カレーライスで|犬に乗って|猫と一緒に|象に乗って"),
    re.compile(r"(メダカ|魚|犬|猫|鳥|動物)(がしゃべ|が.*言っ|が.*教え|が.*手伝|が.*宿題)"),
    re.compile(r"宇宙から|月から|火星から|異世界から|未来から|過去から|別次元"),
    re.compile(r"1000歳|100歳|500年前|昨日生まれた|宇宙人|ロボット|AI"),
    re.compile(r"寝ること|食べること|買い物|遊ぶこと|友達と遊|散歩|お風呂に入ること|歯磨き"),
    re.compile(r"スマホをいじること|SNS|LINE|Instagram|Twitter|Facebook"),
    re.compile(r"えへへ|あはは|ふふふ|にゃーん|わんわん|もぐもぐ|ぴょんぴょん"),
    # 単発の w は英単語にも出るので連続した w のみ
    re.compile(r"超絶|めっちゃ神|やばたん|草|[wｗ]{2,}|笑"),
    re.compile(r"お母さんのお腹の中|卵から生まれて|拾われて|神様が|天使が|悪魔が"),
]

MEANINGFUL_SHORT_ANSWER = re.compile(r"はい|いいえ|分|時間|電車|バス|車|歩|自転車")

# (質問の種類, 質問パターン, ふざけた回答パターン)
CONTEXTUAL_JOKE_CHECKS = [
    (
        "transport",
        re.compile(r"何で来|どうやって来|交通手段"),
        re.compile(r"どこでもドア|空飛んで|瞬間移動|魔法|宇宙|異世界"),
    ),
    (
        "time",
        re.compile(r"時間|どれくらい"),
        re.compile(r"0秒|瞬間|光速|音速|1000年|永遠"),
    ),
    (
        "inquiry",
        re.compile(r"探究|活動|取り組|研究"),
        re.compile(r"ゲーム|アニメ|漫画|YouTube|TikTok|スマホ|寝ること|食べること|映画|テレビ|ドラマ"),
    ),
    (
        "difficulty",
        re.compile(r"困った|大変|難しかった|うまくいかな|失敗"),
        re.compile(r"映画|テレビ|ゲーム|YouTube|TikTok|アニメ|漫画|ドラマ|音楽|寝ること|食べること"),
    ),
]

SYMBOLS_ONLY = re.compile(r"^[^\w\s]*$")

INCOMPLETE_ENDINGS = re.compile(r"(その度に|という風に|ということで|なので|そして|また|さらに)$")

SERIOUS_REMINDER_PREFIX = "すみません、今は面接の場ですので、真剣にお答えいただけますか？質問をもう一度しますね。"
CONTINUATION_FALLBACK = "それはどういうことでしょうか？もう少し詳しく教えてください。"


def check_joking_answer(question: str, answer: str) -> bool:
    """ふざけた回答・意味のない回答なら True。"""
    question = question or ""
    answer = answer or ""
    trimmed = answer.strip()

    obviously_joking = any(p.search(answer) for p in JOKING_PATTERNS)
    meaningless = len(answer) < 5 and not MEANINGFUL_SHORT_ANSWER.search(answer)

    # 質問の種類ごとの判定（後でマッチしたものが優先）
    contextually_inappropriate = False
    for _, question_pattern, answer_pattern in CONTEXTUAL_JOKE_CHECKS:
        if question_pattern.search(question):
            contextually_inappropriate = bool(answer_pattern.search(answer))

    symbols_only = 0 < len(trimmed) <= 5 and bool(SYMBOLS_ONLY.match(trimmed))

    return obviously_joking or meaningless or contextually_inappropriate or symbols_only


def is_incomplete_answer(answer: str) -> bool:
    """接続詞などで言いかけのまま終わっている回答。"""
    return bool(INCOMPLETE_ENDINGS.search((answer or "").strip()))


def serious_reminder(last_question: str) -> str:
    return f"{SERIOUS_REMINDER_PREFIX}{last_question or ''}"


def serious_fallback_variations(last_answer: str) -> list[str]:
    answer = (last_answer or "").strip()
    quoted = f"{answer[:18]}..." if len(answer) > 20 else answer
    first_sentence = answer.split("。")[0]
    return [
        "それは間違いありませんか？もう一度、真剣にお答えいただけますか？",
        "なるほど。でも面接の場ですので、実際のところを教えていただけますか？",
        "そうですか。でも今日は大切な面接ですから、本当のことをお聞かせください。",
        f"{first_sentence}ですか。面接では正直にお答えいただきたいのですが、改めていかがでしょうか？",
        "それは本当でしょうか？実際の経験を教えてください。",
        f"「{quoted}」について、もう少し具体的に教えていただけますか？",
        "面接ではできるだけ本当のことをお聞かせください。改めていかがでしょうか？",
    ]


def pick_serious_fallback(last_answer: str, rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(serious_fallback_variations(last_answer))


# ===== 質問と回答の整合性 =====
QUESTION_TYPE_PATTERNS = {
    "time": re.compile(r"どれくらい|何分|何時間|時間|かかりましたか"),
    "method": re.compile(r"どのように|どうやって|どんな方法|どういう風に|どのような方法|方法で"),
    "reason": re.compile(r"なぜ|どうして|理由|きっかけ"),
    "difficulty": re.compile(r"困った|大変|難しかった|うまくいかな|失敗"),
    "example": re.compile(r"例えば|具体的に|どんな|何か"),
    "person": re.compile(r"誰|先生|友達|仲間|一緒"),
    "quantity": re.compile(r"何人|何回|何個|いくつ"),
    "feeling": re.compile(r"どう思|どう感じ|気持ち|印象"),
    "effort": re.compile(r"工夫|取り組み|努力|頑張って|心がけ|注意"),
    "measurement": re.compile(r"測定|計測|調べ|記録|データ|実験"),
}

ANSWER_HAS = {
    "time": re.compile(r"\d+分|\d+時間|分|時間|かかり"),
    "method": re.compile(r"使って|して|すると|ように|やり方|手順|試験紙|道具|器具|測定して|測定する|測定した"),
    "reason": re.compile(r"から|ため|ので|理由|きっかけ"),
    "difficulty": re.compile(r"困った|大変|難しかった|うまくいかな|失敗|問題|課題|苦労|死んで|だめ|悪く"),
    "example": re.compile(r"例えば|具体的に|ような|など"),
    "person": re.compile(r"先生|友達|仲間|みんな|一緒|母|父"),
    "quantity": re.compile(r"\d+人|\d+回|\d+個"),
    "feeling": re.compile(r"思った|感じた|嬉しかった|楽しかった|悲しかった|可愛い|癒される"),
    "effort": re.compile(r"工夫|取り組み|努力|頑張って|心がけ|注意|気をつけ|改善|試み|対策"),
    "measurement": re.compile(r"測定|計測|調べ|記録|データ|実験|pH|数値|値"),
}

# 理由付けでは判定を狭める
REASON_ANSWER_HAS = {
    "method": re.compile(r"使って|して|すると|ように|やり方|手順"),
    "difficulty": re.compile(r"困った|大変|難しかった|うまくいかな|失敗"),
    "effort": re.compile(r"工夫|取り組み|努力|頑張って|心がけ"),
    "measurement": re.compile(r"測定|計測|調べ|記録|データ|実験|pH|数値"),
}

ENJOYMENT_ONLY = re.compile(r"楽しかった|嬉しかった|面白かった")
OPINION_ONLY = re.compile(r"重要|大切|思います|と思う")
DETAIL_REQUEST = re.compile(r"詳しく|説明|教えて")


def _question_types(question: str) -> dict[str, bool]:
    return {name: bool(p.search(question)) for name, p in QUESTION_TYPE_PATTERNS.items()}


def _answer_has(answer: str, table: dict[str, re.Pattern] = ANSWER_HAS) -> dict[str, bool]:
    return {name: bool(p.search(answer)) for name, p in table.items()}


def check_answer_alignment(question: str, answer: str) -> bool:
    """質問と回答が噛み合っていなければ True。"""
    question = question or ""
    answer = answer or ""
    q = _question_types(question)
    a = _answer_has(answer)
    length = len(answer)
    stripped = answer.strip()

    rules = [
        q["time"] and not a["time"] and length > 15,
        q["method"] and not a["method"] and length > 15 and bool(OPINION_ONLY.search(answer)),
        q["reason"] and not a["reason"] and length > 15,
        q["difficulty"] and not a["difficulty"] and bool(ENJOYMENT_ONLY.search(answer)),
        q["person"] and not a["person"] and length > 10,
        q["quantity"] and not a["quantity"] and length > 10,
        "明和" in answer and "明和" not in question and "志望" not in question,
        "測定" in question and "映画" in answer,
        "pH値" in question and bool(re.search(r"映画|テレビ|ゲーム", answer)),
        "方法" in question and bool(re.search(r"映画|友達と遊|買い物", answer)),
        (stripped in ("はい", "いいえ") or length < 10) and bool(DETAIL_REQUEST.search(question)),
        q["effort"] and not a["effort"] and a["feeling"] and not a["method"] and length > 15,
        q["measurement"] and not a["measurement"] and a["feeling"] and not a["method"] and length > 15,
    ]
    return any(rules)


def get_misalignment_reason(question: str, answer: str) -> str:
    question = question or ""
    answer = answer or ""
    q = _question_types(question)
    a = _answer_has(answer, REASON_ANSWER_HAS)
    has_feeling = bool(ANSWER_HAS["feeling"].search(answer))

    if q["effort"] and not a["effort"] and has_feeling:
        return "工夫を聞かれているのに感想のみ"
    if q["measurement"] and not a["measurement"] and has_feeling:
        return "測定について聞かれているのに感想のみ"
    if q["method"] and not a["method"]:
        return "方法を聞かれているのに方法の説明なし"
    if q["difficulty"] and not a["difficulty"]:
        return "困難を聞かれているのに困難の説明なし"
    if "映画" in answer and "映画" not in question:
        return "質問と全く関係ない映画の話"
    if "測定" in question and "映画" in answer:
        return "測定について聞かれているのに映画の話"
    if "pH値" in question and re.search(r"映画|テレビ|ゲーム", answer):
        return "pH値について聞かれているのに娯楽の話"
    if "方法" in question and re.search(r"映画|友達と遊|買い物", answer):
        return "方法について聞かれているのに日常生活の話"
    return "質問と回答の内容が一致しない"


def _clarification_topic(question: str) -> str:
    if "困った" in question:
        return "困ったことについて"
    if "工夫" in question:
        return "工夫について"
    if "測定" in question:
        return "測定方法について"
    if "pH" in question:
        return "pH値について"
    return "その点について"


def clarification_fallbacks(question: str, answer: str) -> list[str]:
    """噛み合わない回答への軌道修正の候補。特定のケースは1件に絞る。"""
    question = question or ""
    answer = answer or ""
    if "映画" in answer and "測定" in question:
        return ["映画も楽しいですね。でも今はpH値の測定方法についてお聞きしたいのですが、いかがでしょうか？"]
    if "映画" in answer and "工夫" in question:
        return ["映画も楽しいですね。でも今は工夫についてお聞きしたいのですが、いかがでしょうか？"]
    if "友達" in answer and "友達" not in question:
        return ["お友達との時間も大切ですね。でも先ほどの質問についてお答えいただけますか？"]
    return [
        "すみません、それはどういうことでしょうか？もう少し詳しく説明していただけますか？",
        f"なるほど。でも今は{_clarification_topic(question)}お聞きしたいのですが、いかがでしょうか？",
        "それも興味深いお話ですが、先ほどの質問について教えていただけますか？",
    ]


def pick_clarification_fallback(
    question: str, answer: str, rng: Optional[random.Random] = None
) -> str:
    return (rng or random).choice(clarification_fallbacks(question, answer))


# ===== 否定形の質問 =====
NEGATIVE_QUESTION_PATTERNS = [
    re.compile(r"ないか[？?]"),
    re.compile(r"ではないか[？?]"),
    re.compile(r"じゃないか[？?]"),
    re.compile(r"ありませんか[？?]"),
    re.compile(r"いけないか[？?]"),
    re.compile(r"だめか[？?]"),
]

YES_WORDS = ("はい", "そうです", "そう思います", "あります", "います")
NO_WORDS = ("いいえ", "ちがいます", "ありません", "いません", "そうではない")

NEGATIVE_CLARIFICATION = (
    "すみません、もう少し詳しく教えてください。"
    "その探究活動には、1つの決まった正解がありますか？"
    "それとも、いろいろな答えが考えられる問題ですか？"
)


@dataclass
class NegativeResponseInterpretation:
    actual_meaning: str
    confidence: float
    needs_clarification: bool = False

    def to_dict(self) -> dict:
        return {
            "actual_meaning": self.actual_meaning,
            "confidence": self.confidence,
            "needs_clarification": self.needs_clarification,
        }


def detect_negative_question(question: str) -> bool:
    return any(p.search(question or "") for p in NEGATIVE_QUESTION_PATTERNS)


def interpret_negative_response(response: str, is_negative_question: bool) -> NegativeResponseInterpretation:
    """否定疑問への「はい」は「ない」、「いいえ」は「ある」と解釈する。"""
    response = response or ""
    if not is_negative_question:
        return NegativeResponseInterpretation(response, 0.7)

    has_no = any(word in response for word in NO_WORDS)
    # 「ちがいます」が「います」に当たらないよう否定語を除いてから判定
    yes_scan = response
    for word in NO_WORDS:
        yes_scan = yes_scan.replace(word, "")
    has_yes = any(word in yes_scan for word in YES_WORDS)

    if has_yes and not has_no:
        return NegativeResponseInterpretation("（正解は）ない", 0.8)
    if has_no and not has_yes:
        return NegativeResponseInterpretation("（正解は）ある", 0.8)
    return NegativeResponseInterpretation(response, 0.3, needs_clarification=True)
