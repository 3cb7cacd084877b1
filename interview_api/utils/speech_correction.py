"""
音声認識テキストの文脈修正

ブラウザの音声認識結果に対して、面接用語のひらがな→漢字変換と学校名の修正を
ルールで行い、確定テキストのみAIで文脈修正する。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from interview_api.prompts.speech_prompts import (
    SPEECH_CORRECTION_SYSTEM_PROMPT,
    build_correction_prompt,
)
from interview_api.utils.llm import call_llm_with_error
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)

AI_CORRECTION_MIN_LENGTH = 10

# 適用順に並べる
BASIC_CORRECTIONS: dict[str, str] = {
    "きぼうどうき": "志望動機",
    "しょうらいのゆめ": "将来の夢",
    "べんきょう": "勉強",
    "がくしゅう": "学習",
    "ちょうしょ": "長所",
    "たんしょ": "短所",
    "どりょく": "努力",
    "せいちょう": "成長",
    "がんばる": "頑張る",
    "きょうりょく": "協力",
    "せきにんかん": "責任感",
    "だと思います。": "だと思います",
    "と思っています。": "と思っています",
    "です。": "です",
    "ます。": "ます",
}

SCHOOL_CORRECTIONS: dict[str, str] = {
    "めいわこうこうふぞくちゅうがっこう": "明和高校附属中学校",
    "めいわちゅうがっこう": "明和高校附属中学校",
    "かりやこうこうふぞく": "刈谷高校附属中学校",
    "つしまこうこうふぞく": "津島高校附属中学校",
    "はんだこうこうふぞく": "半田高校附属中学校",
    "ちゅうこういったん": "中高一貫",
    "たんきゅうがくしゅう": "探究学習",
    "こくさいりかい": "国際理解",
}

REASON_RULES_ONLY = "ルールベースの基本修正のみ実行"
REASON_NO_KEY = "AIのAPIキーが未設定のため基本修正のみ実行"
REASON_AI_FAILED = "AI修正でエラーが発生したため基本修正のみ実行"


@dataclass
class CorrectionRecord:
    position: int
    original: str
    corrected: str
    reason: str = "文脈・表記修正"


@dataclass
class TranscriptCorrection:
    original: str
    corrected: str
    confidence: float
    reasoning: str
    corrections: list[CorrectionRecord] = field(default_factory=list)
    ai_applied: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _apply(text: str, table: dict[str, str]) -> str:
    for wrong, right in table.items():
        text = text.replace(wrong, right)
    return text


def apply_basic_corrections(text: str) -> str:
    return _apply(text, BASIC_CORRECTIONS)


def apply_school_specific_corrections(text: str) -> str:
    # 長い学校名から先に置換する
    return _apply(text, SCHOOL_CORRECTIONS)


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    current[j - 1] + 1,
                    previous[j] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(a, b)) / longer


def correction_confidence(original: str, corrected: str) -> float:
    if original == corrected:
        return 1.0
    longer = max(len(original), len(corrected))
    length_ratio = min(len(original), len(corrected)) / longer
    return round((length_ratio + string_similarity(original, corrected)) / 2, 3)


def detect_corrections(original: str, corrected: str) -> list[CorrectionRecord]:
    if original == corrected:
        return []
    return [CorrectionRecord(position=0, original=original, corrected=corrected)]


async def correct_transcript(
    text: str,
    context: Optional[dict[str, Any]] = None,
    is_interim: bool = False,
) -> TranscriptCorrection:
    """ルール修正のあと、確定テキストのみAIで文脈修正する。"""
    # 複合語（学校名・探究学習）を先に置換する
    corrected = apply_basic_corrections(apply_school_specific_corrections(text))
    reasoning = REASON_RULES_ONLY
    ai_applied = False

    if not is_interim and len(text) > AI_CORRECTION_MIN_LENGTH:
        result = await call_llm_with_error(
            system_prompt=SPEECH_CORRECTION_SYSTEM_PROMPT,
            user_message=build_correction_prompt(corrected, context),
            max_tokens=300,
            temperature=0.3,
            feature="speech_correction",
        )
        if result.success and result.data and result.data.get("corrected"):
            corrected = str(result.data["corrected"])
            reasoning = str(result.data.get("reasoning") or "修正なし")
            ai_applied = True
        elif result.error and result.error.error_type == "no_api_key":
            reasoning = REASON_NO_KEY
        else:
            logger.warning("[音声認識補正] AI修正に失敗したためルール修正結果を返します")
            reasoning = REASON_AI_FAILED

    return TranscriptCorrection(
        original=text,
        corrected=corrected,
        confidence=correction_confidence(text, corrected),
        reasoning=reasoning,
        corrections=detect_corrections(text, corrected),
        ai_applied=ai_applied,
    )
