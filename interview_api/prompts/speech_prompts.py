"""
Speech correction (音声認識補正) Prompt Templates

Used by interview_api/utils/speech_correction.py.
"""

from typing import Any, Optional

SPEECH_CORRECTION_SYSTEM_PROMPT = """あなたは音声認識テキストの校正専門家です。
中学受検の面接の文脈を理解し、自然で正確な日本語に修正してください。

修正の方針：
1. 音声認識の誤りを修正（同音異義語、助詞、語尾など）
2. 面接にふさわしい丁寧語に調整
3. 文脈に合わない単語を適切な表現に置換
4. 重複や言い淀みを自然に整理
5. 小学6年生らしい表現を保持

JSONのみで回答してください：
{
  "corrected": "修正されたテキスト",
  "reasoning": "修正理由の簡潔な説明"
}"""


def _history_lines(history: list[dict]) -> str:
    lines = []
    for msg in history[-3:]:
        speaker = "面接官" if msg.get("role") == "interviewer" else "受検生"
        lines.append(f"{speaker}: {msg.get('content', '')}")
    return "\n".join(lines) or "履歴なし"


def build_correction_prompt(text: str, context: Optional[dict[str, Any]]) -> str:
    if not context:
        return f'音声認識結果: "{text}"\n\n上記のテキストを自然で正確な日本語に修正してください。'

    essay = context.get("essay_content") or {}
    return f"""音声認識結果: "{text}"

文脈情報:
志願理由書の内容:
- 志望動機: {essay.get("motivation") or "不明"}
- 探究活動: {essay.get("research") or "不明"}
- 中学生活: {essay.get("school_life") or "不明"}
- 将来の夢: {essay.get("future") or "不明"}

現在の質問: "{context.get("current_question") or "不明"}"

これまでの会話:
{_history_lines(context.get("conversation_history") or [])}

上記の文脈を踏まえて、音声認識結果を自然で正確な日本語に修正してください。"""
