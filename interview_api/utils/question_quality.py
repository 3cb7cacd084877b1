"""
面接官の質問文の品質スコアと不適切な質問の判定
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Literal, Optional

QuestionKind = Literal["normal", "clarification", "serious"]

BASE_SCORE = 50

AIZUCHI = re.compile(r"ですね|でしたね|なるほど|そうですか|そうなんですね")
TRANSITION = re.compile(r"でも|ただ|しかし|それでは|では")
SPECIFIC_INTERROGATIVE = re.compile(r"どのように|どうやって|どんな方法|具体的に|詳しく")
CONTEXT_KEYWORDS = re.compile(r"メダカ|pH|環境委員会|友達|先生|記録|観察|測定")
CLARIFICATION_REDIRECT = re.compile(r"お聞きしたかった|質問は|について|軌道修正")
POLITE = re.compile(r"申し訳|すみません|それでは")
SERIOUS_FIRM = re.compile(r"面接|本当|実際|正直")
SERIOUS_CONFIRM = re.compile(r"間違いありませんか|本当でしょうか")
FIXED_PHRASE = re.compile(r"それは間違いありませんか？")
GENERIC_PHRASE = re.compile(r"もう少し詳しく教えてください")
PERSONAL = re.compile(r"あなた|今お聞きした|先ほどの|その時")

THANKS = re.compile(r"ありがとうございます|ありがとう|お疲れさまでした")
AIZUCHI_ONLY = re.compile(r"^(はい|そうですね|なるほど|うん|ええ)[。、]*$")
DEEP_DIVE_BANNED = re.compile(r"ありがとうございます|ありがとう|そうですね|お疲れさまでした|よくわかりました|なるほど")
SURFACE_PHRASES = re.compile(r"予想と違った|困ったことは|うまくいかなかった|大変だった")


@dataclass
class QualityBreakdown:
    basic: int = 0
    naturalness: int = 0
    specificity: int = 0
    type_specific: int = 0
    penalties: int = 0


@dataclass
class QuestionQuality:
    score: int
    factors: list[str] = field(default_factory=list)
    breakdown: QualityBreakdown = field(default_factory=QualityBreakdown)

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_question_quality(question: str, kind: QuestionKind = "normal") -> QuestionQuality:
    question = question or ""
    score = BASE_SCORE
    factors: list[str] = []
    b = QualityBreakdown()

    def add(bucket: str, points: int, factor: str) -> None:
        nonlocal score
        score += points
        setattr(b, bucket, getattr(b, bucket) + points)
        factors.append(factor)

    if "？" in question:
        add("basic", 10, "質問符あり")
    else:
        add("penalties", -20, "質問符なし")

    length = len(question)
    if 20 <= length <= 100:
        add("basic", 10, "適切な長さ")
    elif length < 20:
        add("penalties", -10, "短すぎる")
    else:
        add("penalties", -5, "長すぎる")

    if AIZUCHI.search(question):
        add("naturalness", 15, "相槌で自然")
    if TRANSITION.search(question):
        add("naturalness", 10, "転換表現で流暢")
    if SPECIFIC_INTERROGATIVE.search(question):
        add("specificity", 12, "具体的な疑問詞")
    if CONTEXT_KEYWORDS.search(question):
        add("specificity", 8, "キーワード活用")

    if kind == "clarification":
        if CLARIFICATION_REDIRECT.search(question):
            add("type_specific", 15, "明確な軌道修正")
        if POLITE.search(question):
            add("type_specific", 10, "丁寧な表現")
    elif kind == "serious":
        if SERIOUS_FIRM.search(question):
            add("type_specific", 15, "毅然とした対応")
        if SERIOUS_CONFIRM.search(question):
            add("type_specific", 8, "適切な確認表現")

    if FIXED_PHRASE.search(question):
        add("penalties", -5, "固定表現使用")
    if GENERIC_PHRASE.search(question):
        add("penalties", -3, "汎用表現")
    if PERSONAL.search(question):
        add("naturalness", 8, "個人に向けた表現")

    return QuestionQuality(max(0, min(100, score)), factors, b)


def is_inappropriate_question(text: str, min_length: int, depth: Optional[int] = None) -> bool:
    """連続深掘りで使えない質問（お礼・相槌だけ・疑問でない・短すぎる）なら True。"""
    text = (text or "").strip()
    if not text:
        return True
    if DEEP_DIVE_BANNED.search(text):
        return True
    if "？" not in text:
        return True
    if len(text) < min_length:
        return True
    if AIZUCHI_ONLY.match(text):
        return True
    # 深い段階で表面的な困難質問に戻らない
    if depth is not None and depth >= 7 and SURFACE_PHRASES.search(text):
        return True
    return False


def is_inappropriate_reminder(text: str) -> bool:
    """ふざけた回答への注意・軌道修正として不適切なら True。"""
    text = (text or "").strip()
    if len(text) < 5:
        return True
    if "？" not in text:
        return True
    if AIZUCHI_ONLY.match(text):
        return True
    if THANKS.search(text):
        return True
    if text.startswith("ご質問"):
        return True
    tail = text.rstrip("？?！!")
    return tail.endswith("です。") or tail.endswith("ました。")


def ensure_question_mark(text: str) -> str:
    text = (text or "").strip()
    if text and "？" not in text and "?" not in text:
        return f"{text}？"
    return text


def passes_minimum_quality(text: str, prompt: str = "") -> bool:
    """短すぎる応答やプロンプトのオウム返しを弾く。"""
    text = (text or "").strip()
    return len(text) >= 10 and text != (prompt or "").strip()
