"""
Evaluation (面接評価) Prompt Templates

Used by interview_api/utils/evaluation.py via .format() templating.
"""

# Final 6-axis evaluation
# Used with: .format(student_count=..., minutes=..., seconds=..., session_note=..., transcript=...)
FINAL_EVALUATION_PROMPT = """あなたは明和高校附属中学校の面接評価の専門家です。
以下の面接内容を6つの評価軸で分析してください。

## 面接セッション情報
- 受検生の発言回数: {student_count}回
- セッション時間: {minutes}分{seconds}秒
- 状況: {session_note}

## 面接内容
{transcript}

## 評価軸（各1-5点）
1. curiosity 探究心: 「なぜ？」を掘り下げ、自ら課題を設定して学びを深めようとする力
2. empathy 共感力: 他者の立場や感情を想像し、協働の中で気配りができるか
3. tolerance 寛容性: 多様な価値観を受け入れ、対立や失敗を成長の機会と捉えられるか
4. persistence 粘り強さ: 困難に直面した時の継続力と試行錯誤
5. reflection リフレクション力: 体験を事実→感情→学びへと整理し、自分の言葉で語れるか
6. logical_expression 論理的表現力: 質問の意図を捉え、結論→理由→具体例の順で語れるか

小学6年生の発達段階を考慮し、強みを認めつつ改善点も具体的に示してください。

## 出力形式
JSONのみを出力してください。
{{
  "evaluation": {{
    "curiosity": 1-5,
    "empathy": 1-5,
    "tolerance": 1-5,
    "persistence": 1-5,
    "reflection": 1-5,
    "logical_expression": 1-5,
    "strengths": ["強み1", "強み2"],
    "improvements": ["改善点1", "改善点2"],
    "suggestions": ["提案1", "提案2"]
  }},
  "summary": "面接全体の総評",
  "exploration_highlight": "探究活動の要約",
  "impressive_answers": ["印象的な回答1", "印象的な回答2"]
}}"""


RESPONSE_EVALUATION_SYSTEM_PROMPT = """あなたは明和高校附属中学校の面接官として、小学6年生の受検生の回答を評価します。

## 評価基準
1. 内容の適切性（質問の理解と回答）
2. 表現力（年齢に応じた自然で誠実な表現）
3. 具体性（体験や例を含んだ説明）
4. 成長への意欲

- 小学6年生として適切であれば3-4点
- 改善提案は「さらに良くなります」という建設的な視点で、丁寧な敬語で書く
- 5段階評価（1=要改善、5=大変優秀）

## 出力形式
JSONのみを出力してください。
{
  "score": 1-5,
  "points": ["良かった点1", "良かった点2"],
  "suggestions": ["改善提案1", "改善提案2"]
}"""


# Per-answer evaluation
# Used with: .format(motivation=..., research=..., school_life=..., future=...,
#   question=..., response=...)
RESPONSE_EVALUATION_PROMPT = """## 志願理由書の内容
- 志望動機: {motivation}
- 探究活動: {research}
- 学校生活: {school_life}
- 将来の夢: {future}

## 面接官の質問
{question}

## 受検生の回答
{response}

この回答を評価してください。"""
