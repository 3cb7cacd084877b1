"""
キーワード分析に基づく深掘り質問エンジン

回答のキーワード分類から深掘り戦略（process / difficulty / emotion /
collaboration / learning / future）を決め、使用回数の少ないテンプレートを
選んだうえで、AIに質問文を仕上げさせる。AIが使えない時はテンプレートを返す。
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Literal

from interview_api.prompts.interview_prompts import DEEP_DIVE_PROMPT
from interview_api.utils.llm import _parse_json_response, call_llm_with_error
from interview_api.utils.response_analyzer import KeywordAnalysis

MAX_DEEP_DIVE_DEPTH = 9

DeepDiveType = Literal["process", "emotion", "difficulty", "collaboration", "learning", "future"]

# テンプレートのみ使用時の信頼度
CONFIDENCE_TEMPLATE_NO_KEY = 0.5
CONFIDENCE_TEXT_EXTRACTED = 0.6
CONFIDENCE_TEMPLATE_PARSE_FAILED = 0.4
CONFIDENCE_TEMPLATE_ERROR = 0.3


@dataclass
class DeepDiveStrategy:
    current_depth: int
    max_depth: int = MAX_DEEP_DIVE_DEPTH
    focus_areas: list[str] = field(default_factory=list)
    question_type: DeepDiveType = "process"
    urgency: Literal["low", "medium", "high"] = "medium"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DeepDiveQuestionResult:
    question: str
    confidence: float
    reasoning: str
    strategy: DeepDiveStrategy

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "strategy": self.strategy.to_dict(),
        }


def determine_deep_dive_strategy(analysis: KeywordAnalysis, depth: int) -> DeepDiveStrategy:
    strategy = DeepDiveStrategy(current_depth=depth)

    if depth <= 3:
        strategy.question_type = "process"
        strategy.focus_areas = [*analysis.primary, *analysis.secondary]
    elif depth <= 6:
        if analysis.difficulties:
            strategy.question_type = "difficulty"
            strategy.focus_areas = list(analysis.difficulties)
            strategy.urgency = "high"
        elif analysis.emotions:
            strategy.question_type = "emotion"
            strategy.focus_areas = list(analysis.emotions)
    else:
        if analysis.collaborators:
            strategy.question_type = "collaboration"
            strategy.focus_areas = list(analysis.collaborators)
        else:
            strategy.question_type = "learning"
            strategy.focus_areas = ["学び", "発見", "成長"]

    return strategy


def _first(items: list[str], default: str) -> str:
    return items[0] if items else default


def build_templates(analysis: KeywordAnalysis) -> dict[str, list[str]]:
    primary = analysis.primary
    return {
        "process": [
            f"{_first(primary, '活動')}について、具体的にはどのような手順で進めていましたか？",
            f"{_first(primary, 'それ')}はどのようにして始めることになったのですか？",
            f"{_first(analysis.secondary, 'その方法')}は、誰かに教わったのですか？",
        ],
        "difficulty": [
            f"{_first(primary, '活動')}で、一番困ったことや大変だったことはありませんでしたか？",
            f"{_first(analysis.difficulties, 'その困難')}に直面したとき、どのように対処しましたか？",
            "失敗やうまくいかなかったことから、どのような学びがありましたか？",
        ],
        "emotion": [
            f"{_first(analysis.emotions, 'その気持ち')}になったのは、どのような場面でしたか？",
            f"一番{_first(analysis.emotions, '印象的')}だった瞬間について、詳しく教えてください。",
            "そのとき、周りの人たちはどのような反応を示しましたか？",
        ],
        "collaboration": [
            f"{_first(analysis.collaborators, '仲間')}との協力で、印象に残っていることはありますか？",
            "意見が分かれたときは、どのようにして解決しましたか？",
            f"{_first(analysis.collaborators, 'チーム')}の中での自分の役割は何でしたか？",
        ],
        "learning": [
            "この経験を通して、自分自身はどのように変わったと思いますか？",
            "他の活動にも活かせそうなことはありましたか？",
            "今振り返ってみて、この経験の価値をどう感じますか？",
        ],
        "future": [
            f"これからも{_first(primary, '活動')}を続けていきたいですか？",
            "次はどのようなことに挑戦してみたいと思いますか？",
            "将来、この経験をどのように活かしたいですか？",
        ],
    }


class DeepDiveTemplateSelector:
    """同じテンプレートの連続使用を避けるため、使用回数の最も少ないものを選ぶ。"""

    def __init__(self) -> None:
        self._usage: Counter[str] = Counter()

    def select(self, analysis: KeywordAnalysis, strategy: DeepDiveStrategy) -> str:
        templates = build_templates(analysis)
        candidates = templates.get(strategy.question_type) or templates["process"]
        # 同数なら先頭を優先
        best = min(candidates, key=lambda t: self._usage[t])
        self._usage[best] += 1
        return best

    def stats(self) -> dict:
        total = sum(self._usage.values())
        return {
            "distinct_templates": len(self._usage),
            "total_selections": total,
            "avg_usage_per_template": (total / len(self._usage)) if self._usage else 0.0,
        }

    def clear(self) -> None:
        self._usage.clear()


# プロセス内で共有
template_selector = DeepDiveTemplateSelector()

_QUESTION_FIELD = re.compile(r'"question"\s*:\s*"([^"]+)"')


async def generate_deep_dive_question(
    previous_question: str,
    answer: str,
    analysis: KeywordAnalysis,
    depth: int,
    selector: DeepDiveTemplateSelector | None = None,
) -> DeepDiveQuestionResult:
    """戦略とテンプレートを決めてAIに質問を生成させる。"""
    selector = selector or template_selector
    strategy = determine_deep_dive_strategy(analysis, depth)
    template = selector.select(analysis, strategy)

    prompt = DEEP_DIVE_PROMPT.format(
        previous_question=previous_question,
        answer=answer,
        depth=strategy.current_depth,
        max_depth=strategy.max_depth,
        primary=", ".join(analysis.primary),
        difficulties=", ".join(analysis.difficulties),
        emotions=", ".join(analysis.emotions),
        collaborators=", ".join(analysis.collaborators),
        keyword=_first(analysis.primary, "キーワード"),
        question_type=strategy.question_type,
        template=template,
    )

    result = await call_llm_with_error(
        system_prompt=prompt,
        user_message="深掘り質問をJSONで出力してください。",
        max_tokens=300,
        temperature=0.3,
        feature="interview",
        response_format="text",
    )

    if not result.success:
        error_type = result.error.error_type if result.error else "unknown"
        if error_type == "no_api_key":
            return DeepDiveQuestionResult(
                template, CONFIDENCE_TEMPLATE_NO_KEY, "API未使用のテンプレート回答", strategy
            )
        detail = result.error.detail if result.error else ""
        return DeepDiveQuestionResult(
            template, CONFIDENCE_TEMPLATE_ERROR, f"エラーフォールバック: {detail}", strategy
        )

    text = result.data.get("text", "") if result.data else ""
    parsed = _parse_json_response(text)
    if parsed and parsed.get("question"):
        confidence = parsed.get("confidence")
        return DeepDiveQuestionResult(
            question=str(parsed["question"]),
            confidence=float(confidence) if isinstance(confidence, (int, float)) else 0.7,
            reasoning=str(parsed.get("reasoning") or "AI生成"),
            strategy=strategy,
        )

    match = _QUESTION_FIELD.search(text)
    if match:
        return DeepDiveQuestionResult(
            match.group(1), CONFIDENCE_TEXT_EXTRACTED, "テキスト抽出成功", strategy
        )

    return DeepDiveQuestionResult(
        template, CONFIDENCE_TEMPLATE_PARSE_FAILED, "フォールバックテンプレート使用", strategy
    )
