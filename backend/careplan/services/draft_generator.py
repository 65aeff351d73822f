"""
Draft Generator Adapter.
Turns patient + assessment data into a prompt, calls the external text
generation service once, and parses the reply into goals / issues / supports.
Any failure yields a fixed generic draft so the wizard can always continue.
"""
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..core.config import settings
from ..core.exceptions import GenerationError
from ..core.result import Err, Ok, Result
from ..schemas import Assessment, DraftContent, PatientRecord

logger = logging.getLogger(__name__)

MAX_SECTION_ITEMS = 5

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"

# (field, heading keywords, placeholder prefix)
SECTIONS = (
    ("goals", ("goals", "目標"), "目標"),
    ("issues", ("issues", "問題点", "課題"), "問題点"),
    ("supports", ("supports", "支援内容", "支援"), "支援内容"),
)

VISIT_TYPE_LABELS = {"nurse": "看護のみ", "rehab": "リハビリのみ", "both": "看護・リハビリ"}

_BULLET = re.compile(r"^\s*(?:[-*•・‐－]|\d+[.)．、])\s*(.+?)\s*$")
_QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"')
_HEADING_MARKUP = re.compile(r"^[#*_\s]*(?:\d+[.)．、]\s*)?[*_【\[\s]*(.*?)[*_】\]\s]*[:：]?[*_\s]*$")


def fallback_draft() -> DraftContent:
    """Clinically generic content used whenever generation fails outright."""
    return DraftContent(
        goals=["患者の状態を安定させる", "日常生活の自立度を向上させる", "生活の質を向上させる"],
        issues=["健康状態の管理", "日常生活動作の制限", "社会的孤立のリスク"],
        supports=["定期的な健康チェック", "日常生活動作の支援", "社会資源の活用支援"],
    )


class ParseStage(str, Enum):
    STRICT_JSON = "strict_json"
    HEURISTIC = "heuristic"


class DraftSource(str, Enum):
    STRICT_JSON = "strict_json"
    HEURISTIC = "heuristic"
    FALLBACK = "fallback"


@dataclass
class ParsedDraft:
    content: DraftContent
    stage: ParseStage


@dataclass
class DraftResult:
    content: DraftContent
    source: DraftSource


# ── prompt ───────────────────────────────────────────────────────────────────

def _or_none(value: Optional[str]) -> str:
    return value.strip() if value and value.strip() else "情報なし"


def _label(value) -> str:
    return getattr(value, "value", value)


def build_prompt(patient: PatientRecord, assessment: Assessment, visit_type: Optional[str] = None) -> str:
    visit_line = ""
    if visit_type:
        visit_line = f"- 訪問種別: {VISIT_TYPE_LABELS.get(_label(visit_type), _label(visit_type))}\n"
    return (
        "あなたは訪問看護計画書を作成する専門家です。"
        "以下の患者情報と基本情報から、適切な訪問看護計画書を作成してください。\n"
        "\n"
        "## 患者情報\n"
        f"- 氏名: {patient.name}\n"
        f"- 年齢: {patient.age}歳\n"
        f"- 性別: {_label(patient.gender)}\n"
        f"- 住所: {patient.address}\n"
        f"- 主治医・医療機関: {_or_none(patient.primary_doctor)}\n"
        f"- 既往歴: {_or_none(patient.medical_history)}\n"
        f"- 保険種別: {_label(patient.insurance_type)}\n"
        f"- 要介護度: {_label(patient.care_level)}\n"
        f"{visit_line}"
        "\n"
        "## 基本情報\n"
        f"- 健康状態: {_or_none(assessment.health_status)}\n"
        f"- 移動ADL: {assessment.adl_mobility.label}\n"
        f"- 食事ADL: {assessment.adl_eating.label}\n"
        f"- トイレADL: {assessment.adl_toilet.label}\n"
        f"- 入浴ADL: {assessment.adl_bathing.label}\n"
        f"- 本人・家族の要望: {_or_none(assessment.patient_family_request)}\n"
        f"- 医師の指示: {_or_none(assessment.doctor_instructions)}\n"
        f"- スタッフ所見: {_or_none(assessment.staff_notes)}\n"
        "\n"
        "## 出力形式\n"
        "以下の形式でJSON形式で出力してください。\n"
        "{\n"
        '  "goals": ["目標1", "目標2", "目標3"],\n'
        '  "issues": ["問題点1", "問題点2", "問題点3"],\n'
        '  "supports": ["支援内容1", "支援内容2", "支援内容3"]\n'
        "}\n"
        "\n"
        "目標、問題点、支援内容はそれぞれ3〜5項目程度で、具体的かつ患者の状態に合わせた内容にしてください。\n"
    )


# ── parsing ──────────────────────────────────────────────────────────────────

def parse_strict_json(text: str) -> Optional[DraftContent]:
    """Parse the span from the first '{' to the last '}' as the three arrays."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start:end + 1])
        return DraftContent.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.debug("Strict JSON parse failed: %s", exc)
        return None


def _quoted_array(text: str, field: str) -> List[str]:
    match = re.search(rf'"{field}"\s*:\s*\[(.*?)\]', text, flags=re.DOTALL)
    if not match:
        return []
    items = [m.strip() for m in _QUOTED.findall(match.group(1))]
    return [i for i in items if i][:MAX_SECTION_ITEMS]


def _section_for_heading(line: str) -> Optional[str]:
    lowered = line.lower()
    for field, keywords, _ in SECTIONS:
        if any(k in lowered for k in keywords):
            return field
    return None


def _marked_heading(line: str) -> Optional[str]:
    """
    A line that is nothing but a section keyword wrapped in markup, such as
    ``**目標**``, ``1. 問題点`` or ``【支援内容】:``. Checked before bullets
    because bold and numbered headings share their leading characters.
    """
    match = _HEADING_MARKUP.match(line)
    if not match:
        return None
    text = match.group(1).strip().lower()
    for field, keywords, _ in SECTIONS:
        if text in keywords:
            return field
    return None


def _bullet_lines(text: str) -> Dict[str, List[str]]:
    """Collect list-item lines under whichever section heading precedes them."""
    found: Dict[str, List[str]] = {field: [] for field, _, _ in SECTIONS}
    current = None
    for line in text.splitlines():
        marked = _marked_heading(line)
        if marked:
            current = marked
            continue
        bullet = _BULLET.match(line)
        if bullet:
            item = bullet.group(1).strip().strip('",')
            if current and item and len(found[current]) < MAX_SECTION_ITEMS:
                found[current].append(item)
            continue
        heading = _section_for_heading(line)
        if heading:
            current = heading
    return found


def parse_heuristic(text: str) -> Optional[DraftContent]:
    """
    Line-based recovery for replies that are not valid JSON. Sections with no
    items get a three-item placeholder; if every section is empty the reply is
    considered unparseable and None is returned.
    """
    bullets = _bullet_lines(text)
    sections: Dict[str, List[str]] = {}
    matched_any = False
    for field, _, prefix in SECTIONS:
        items = _quoted_array(text, field) or bullets[field]
        if items:
            matched_any = True
        else:
            items = [f"{prefix}{n}" for n in (1, 2, 3)]
        sections[field] = items
    if not matched_any:
        return None
    return DraftContent(**sections)


def parse_draft(text: str) -> Optional[ParsedDraft]:
    content = parse_strict_json(text)
    if content is not None:
        return ParsedDraft(content=content, stage=ParseStage.STRICT_JSON)
    content = parse_heuristic(text)
    if content is not None:
        return ParsedDraft(content=content, stage=ParseStage.HEURISTIC)
    return None


# ── service client ───────────────────────────────────────────────────────────

class GenerationClient:
    """HTTP client for the Gemini generateContent endpoint."""

    def __init__(self):
        self.base_url = settings.GEMINI_API_URL
        self.api_key = settings.GEMINI_API_KEY
        self.model = settings.GEMINI_MODEL
        self.timeout = settings.GENERATION_TIMEOUT

    def request_body(self, prompt: str) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "safetySettings": [
                {"category": category, "threshold": SAFETY_THRESHOLD}
                for category in HARM_CATEGORIES
            ],
        }

    def complete(self, prompt: str) -> Result[str]:
        """Single request/response call; no retries."""
        if not self.api_key:
            return Err(GenerationError("Generation API key is not configured"))
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(url, params={"key": self.api_key}, json=self.request_body(prompt))
                resp.raise_for_status()
                payload = resp.json()
        except httpx.TimeoutException as exc:
            logger.warning("Generation request timed out after %ss: %s", self.timeout, exc)
            return Err(GenerationError(f"timed out after {self.timeout}s"))
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Generation service unavailable: %s", exc)
            return Err(GenerationError(str(exc)))

        candidates = payload.get("candidates") or []
        if not candidates:
            reason = (payload.get("promptFeedback") or {}).get("blockReason", "no candidates")
            return Err(GenerationError(f"Generation returned no text ({reason})"))
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts)
        if not text.strip():
            return Err(GenerationError("Generation returned empty text"))
        return Ok(text)


class DraftGenerator:
    def __init__(self, client=None):
        self.client = client or GenerationClient()

    def generate(
        self,
        patient: PatientRecord,
        assessment: Assessment,
        visit_type: Optional[str] = None,
    ) -> DraftResult:
        prompt = build_prompt(patient, assessment, visit_type)
        try:
            result = self.client.complete(prompt)
        except Exception as exc:
            logger.error("Generation client raised for patient %s: %s", patient.id, exc)
            return DraftResult(content=fallback_draft(), source=DraftSource.FALLBACK)

        if not result.is_ok:
            logger.warning("Using fallback draft for patient %s: %s", patient.id, result.error)
            return DraftResult(content=fallback_draft(), source=DraftSource.FALLBACK)

        parsed = parse_draft(result.value)
        if parsed is None:
            logger.warning("Unparseable generation reply for patient %s; using fallback draft", patient.id)
            return DraftResult(content=fallback_draft(), source=DraftSource.FALLBACK)

        if parsed.stage is ParseStage.HEURISTIC:
            logger.info("Draft for patient %s recovered by line heuristics", patient.id)
        return DraftResult(content=parsed.content, source=DraftSource(parsed.stage.value))


draft_generator = DraftGenerator()
