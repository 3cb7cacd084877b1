"""
Prompt Templates Package

Centralized location for all LLM prompt templates and builders.

Modules:
- interview_prompts: interview question generation (guidance, deep dive,
  serious reminder, clarification, continuation, motivation questions)
- evaluation_prompts: final 6-axis evaluation and per-answer evaluation
- essay_prompts: 志願理由書 analysis
- ocr_prompts: handwriting OCR prompt builder
- speech_prompts: speech transcript correction
"""
