"""
手書き志願理由書のOCR（Gemini Vision）

ページごとに Gemini Vision で読み取り、後処理・セクション分割・信頼度計算を行う。
読み取りに失敗したページはプレースホルダーにして処理を続ける。
"""

from __future__ import annotations

import base64
import binascii
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Literal, Optional

from interview_api.config import settings
from interview_api.prompts.ocr_prompts import build_ocr_prompt
from interview_api.utils.llm import call_gemini_vision
from interview_api.utils.secure_logger import get_logger

logger = get_logger(__name__)

EstimatedAge = Literal["elementary", "middle"]
SectionType = Literal["motivation", "research", "school_life", "future", "general"]

ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/jpg", "application/pdf")
PAGE_SEPARATOR = "\n\n--- ページ区切り ---\n\n"
SECTION_CONFIDENCE = 0.8

OCR_SECTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "motivation": ("志望動機", "志望理由", "なぜ"),
    "research": ("探究", "研究", "調べ", "調査"),
    "school_life": ("学校生活", "中学", "高校", "生活"),
    "future": ("将来", "夢", "目標", "未来"),
}

_FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９", "0123456789")
_INLINE_SPACES = re.compile(r"[^\S\n]+")
_UNKNOWN_CHAR = re.compile(r"\[?\?\]?")


class OCRValidationError(ValueError):
    """アップロードされたページが受け付けられない"""


@dataclass
class ImageQuality:
    """クライアント側で計測した画質（未計測なら中間値）"""

    clarity: float = 0.5
    contrast: float = 0.5


@dataclass
class TextSection:
    id: str
    text: str
    section_type: SectionType
    confidence: float = SECTION_CONFIDENCE


@dataclass
class PageOCRResult:
    page_number: int
    text: str
    confidence: float
    sections: list[TextSection] = field(default_factory=list)
    processing_time: float = 0.0
    error: Optional[str] = None


@dataclass
class HandwritingOCRResult:
    combined_text: str
    overall_confidence: float
    pages: list[PageOCRResult]
    total_pages: int
    needs_review: bool
    processing_time: float
    method: str = "gemini-vision"

    def to_dict(self) -> dict:
        return asdict(self)


def decode_page(data: str) -> bytes:
    # data URL のプレフィックスを許容
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise OCRValidationError("Invalid file format or corrupted file.") from e


def validate_page(data: str, mime_type: str) -> None:
    if mime_type not in ALLOWED_MIME_TYPES:
        raise OCRValidationError("Unsupported file type. Please upload JPG, PNG, or PDF files.")
    if len(decode_page(data)) > settings.ocr_max_file_bytes:
        max_mb = settings.ocr_max_file_bytes // (1024 * 1024)
        raise OCRValidationError(f"File size too large. Maximum {max_mb}MB allowed.")


def post_process_text(text: str) -> str:
    lines = []
    for line in (text or "").replace("ヽ", "、").translate(_FULLWIDTH_DIGITS).split("\n"):
        lines.append(_INLINE_SPACES.sub(" ", line).strip())
    return "\n".join(lines).strip()


def _section_type(line: str) -> SectionType:
    for section, keywords in OCR_SECTION_KEYWORDS.items():
        if any(k in line for k in keywords):
            return section  # type: ignore[return-value]
    return "general"


def structure_text(text: str, page_number: int) -> list[TextSection]:
    """見出しキーワードが現れた行で新しいセクションを始める。"""
    sections: list[TextSection] = []
    current = TextSection(id=f"page-{page_number}-section-0", text="", section_type="general")

    for line in (l.strip() for l in text.split("\n")):
        if not line:
            continue
        section_type = _section_type(line)
        if section_type != "general" and section_type != current.section_type:
            if current.text.strip():
                sections.append(current)
            current = TextSection(
                id=f"page-{page_number}-section-{len(sections)}",
                text="",
                section_type=section_type,
            )
        current.text = f"{current.text}\n{line}" if current.text else line

    if current.text.strip():
        sections.append(current)
    return sections


def calculate_confidence(text: str, quality: ImageQuality) -> float:
    confidence = 0.7 + quality.clarity * 0.2 + quality.contrast * 0.1
    unknown_ratio = len(_UNKNOWN_CHAR.findall(text)) / max(1, len(text))
    confidence -= unknown_ratio * 0.3
    if len(text) < 50:
        confidence -= 0.1
    elif len(text) > 100:
        confidence += 0.1
    return round(min(1.0, max(0.0, confidence)), 3)


def combine_page_texts(texts: list[str]) -> str:
    return PAGE_SEPARATOR.join(t for t in texts if t.strip())


async def process_page(
    page_number: int,
    data: str,
    mime_type: str,
    estimated_age: EstimatedAge,
    quality: ImageQuality,
) -> PageOCRResult:
    started = time.perf_counter()
    prompt = build_ocr_prompt(estimated_age, low_clarity=quality.clarity < 0.7)
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]

    result = await call_gemini_vision(
        prompt=prompt,
        image_base64=data,
        mime_type="image/jpeg" if mime_type == "image/jpg" else mime_type,
        feature="ocr",
    )
    if not result.success:
        detail = result.error.detail if result.error else "unknown"
        logger.warning("[手書きOCR] ページ%d の読み取りに失敗: %s", page_number, detail)
        return PageOCRResult(
            page_number=page_number,
            text=f"[ページ{page_number}: 読み取りエラー]",
            confidence=0.0,
            processing_time=round(time.perf_counter() - started, 3),
            error=result.error.message if result.error else None,
        )

    text = post_process_text(result.data.get("text", ""))
    return PageOCRResult(
        page_number=page_number,
        text=text,
        confidence=calculate_confidence(text, quality),
        sections=structure_text(text, page_number),
        processing_time=round(time.perf_counter() - started, 3),
    )


async def process_handwriting(
    pages: list[tuple[str, str, ImageQuality]],
    estimated_age: EstimatedAge = "elementary",
) -> HandwritingOCRResult:
    """pages は (base64データ, MIMEタイプ, 画質) のリスト。検証は呼び出し側で済ませる。"""
    started = time.perf_counter()
    results = []
    for index, (data, mime_type, quality) in enumerate(pages, start=1):
        results.append(await process_page(index, data, mime_type, estimated_age, quality))

    overall = sum(p.confidence for p in results) / len(results) if results else 0.0
    overall = round(overall, 3)
    return HandwritingOCRResult(
        combined_text=combine_page_texts([p.text for p in results]),
        overall_confidence=overall,
        pages=results,
        total_pages=len(results),
        needs_review=overall < settings.ocr_confidence_threshold,
        processing_time=round(time.perf_counter() - started, 3),
    )
