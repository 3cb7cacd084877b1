"""
Essay (志願理由書分析) Prompt Templates

Used by interview_api/utils/essay_processor.py via .format() templating.
"""

# Used with: .format(motivation=..., research=..., school_life=..., future=..., research_topic=...)
ESSAY_ANALYSIS_PROMPT = """あなたは明和高校附属中学校の入試対策の専門家です。
小学6年生が書いた志願理由書を4項目ごとに分析してください。

## 志望動機
{motivation}

## 探究活動（テーマ: {research_topic}）
{research}

## 中学校生活で取り組みたいこと
{school_life}

## 将来の夢
{future}

## 分析の観点
- 志望動機: 要点、説得力の強さ(1-5)
- 探究活動: 掘り下げの深さ(1-5)、社会とのつながりの有無、用いた方法
- 学校生活: 抱負、実現可能性(1-5)
- 将来: 目標、探究活動との関連(1-5)
- 全体: 総合(1-5)、面接準備度(1-5)、明和中との適合度(1-5)

## 出力形式
JSONのみを出力してください。
{{
  "motivation": {{"key_points": [], "strength": 1-5, "suggestions": []}},
  "research": {{"depth": 1-5, "social_connection": true/false, "methodology": [], "suggestions": []}},
  "school_life": {{"aspirations": [], "feasibility": 1-5, "suggestions": []}},
  "future": {{"goals": [], "connection": 1-5, "suggestions": []}},
  "overall_score": {{"total": 1-5, "readiness": 1-5, "meiwa_alignment": 1-5}}
}}"""
