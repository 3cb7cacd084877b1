"""
OCR (手書き文字認識) Prompt Builder

Used by interview_api/utils/ocr.py.
"""

OCR_BASE_PROMPT = """以下の手書き文書を正確にテキスト化してください。

特別な指示：
1. 手書き文字を丁寧に読み取り、誤字脱字を最小化してください
2. 文章の改行や段落構造を保持してください
3. 読み取り不可能な文字は[?]で表記してください
4. 消しゴムで消された部分は無視してください
5. 文脈から推測できる漢字は適切に変換してください"""

AGE_HINTS = {
    "elementary": """
6. 小学生の手書き文字の特徴を考慮してください：
   - ひらがなが多い
   - 漢字の字形が不正確な場合がある
   - 文字のサイズが不均一""",
    "middle": """
6. 中学生の手書き文字の特徴を考慮してください：
   - 漢字の使用頻度が高い
   - 筆圧が強い
   - 行間が狭い場合がある""",
}

LOW_CLARITY_HINT = """
7. 画像の鮮明度が低いため、文脈からの推測を積極的に活用してください"""

OUTPUT_INSTRUCTION = """

出力形式：認識したテキストのみを出力し、説明文は含めないでください。"""


def build_ocr_prompt(estimated_age: str, low_clarity: bool = False) -> str:
    prompt = OCR_BASE_PROMPT + AGE_HINTS.get(estimated_age, "")
    if low_clarity:
        prompt += LOW_CLARITY_HINT
    return prompt + OUTPUT_INSTRUCTION
