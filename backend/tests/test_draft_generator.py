"""Tests for the draft generator: prompt building, reply parsing and fallback."""
import httpx
import pytest

from careplan.core.exceptions import GenerationError
from careplan.core.result import Err, Ok
from careplan.fixtures import fixture_patient
from careplan.models.care_plan import AdlLevel, VisitType
from careplan.schemas import Assessment
from careplan.services.draft_generator import (
    HARM_CATEGORIES,
    DraftGenerator,
    DraftSource,
    GenerationClient,
    ParseStage,
    build_prompt,
    fallback_draft,
    parse_draft,
    parse_heuristic,
    parse_strict_json,
)


class FakeClient:
    """Stands in for the generation service; records every prompt it receives."""

    def __init__(self, reply=None, error=None, raises=None):
        self.reply = reply
        self.error = error
        self.raises = raises
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return Err(self.error)
        return Ok(self.reply)


STRICT_REPLY = """以下が計画書です。
```json
{
  "goals": ["血圧を130/80以下に保つ", "転倒せずに室内を移動できる"],
  "issues": ["血圧の変動", "下肢筋力の低下"],
  "supports": ["毎回の血圧測定", "下肢筋力訓練", "服薬確認"]
}
```"""

BULLET_REPLY = """## 目標
- 血圧が安定する
- 自宅で安全に入浴できる

## 問題点
1. 服薬の飲み忘れ

## 支援内容
・服薬カレンダーの導入
・入浴時の見守り
"""


class TestParseDraft:
    def test_strict_json_is_preferred(self):
        parsed = parse_draft(STRICT_REPLY)
        assert parsed.stage is ParseStage.STRICT_JSON
        assert parsed.content.goals == ["血圧を130/80以下に保つ", "転倒せずに室内を移動できる"]
        assert len(parsed.content.supports) == 3

    def test_strict_json_rejects_extra_keys(self):
        reply = '{"goals": ["a"], "issues": ["b"], "supports": ["c"], "notes": "x"}'
        assert parse_strict_json(reply) is None

    def test_strict_json_rejects_non_string_items(self):
        assert parse_strict_json('{"goals": [1], "issues": [], "supports": []}') is None

    def test_quoted_arrays_recovered_from_broken_json(self):
        reply = '{"goals": ["目標A", "目標B"], "issues": ["問題A"], "supports": ["支援A",]'
        parsed = parse_draft(reply)
        assert parsed.stage is ParseStage.HEURISTIC
        assert parsed.content.goals == ["目標A", "目標B"]
        assert parsed.content.issues == ["問題A"]
        assert parsed.content.supports == ["支援A"]

    def test_bullet_lines_under_headings(self):
        parsed = parse_draft(BULLET_REPLY)
        assert parsed.stage is ParseStage.HEURISTIC
        assert parsed.content.goals == ["血圧が安定する", "自宅で安全に入浴できる"]
        assert parsed.content.issues == ["服薬の飲み忘れ"]
        assert parsed.content.supports == ["服薬カレンダーの導入", "入浴時の見守り"]

    @pytest.mark.parametrize("goals, issues, supports", [
        ("**目標**", "**問題点**", "**支援内容**"),
        ("1. 目標", "2. 問題点", "3. 支援内容"),
        ("【目標】", "【問題点】：", "### 支援内容:"),
    ])
    def test_marked_up_headings_are_not_read_as_items(self, goals, issues, supports):
        """Bold and numbered headings share their leading characters with list items."""
        reply = (
            f"{goals}\n- 血圧が安定する\n"
            f"{issues}\n- 服薬の飲み忘れ\n"
            f"{supports}\n- 服薬カレンダーの導入\n"
        )
        parsed = parse_draft(reply)
        assert parsed.stage is ParseStage.HEURISTIC
        assert parsed.content.goals == ["血圧が安定する"]
        assert parsed.content.issues == ["服薬の飲み忘れ"]
        assert parsed.content.supports == ["服薬カレンダーの導入"]

    def test_numbered_items_under_a_heading_are_kept(self):
        content = parse_heuristic("**目標**\n1. 歩行の安定\n2. 目標体重の維持\n")
        assert content.goals == ["歩行の安定", "目標体重の維持"]

    def test_bullets_capped_at_five_per_section(self):
        reply = "目標\n" + "\n".join(f"- 目標項目{n}" for n in range(8))
        content = parse_heuristic(reply)
        assert len(content.goals) == 5

    def test_empty_sections_get_placeholders(self):
        content = parse_heuristic("目標\n- 歩行の安定\n")
        assert content.goals == ["歩行の安定"]
        assert content.issues == ["問題点1", "問題点2", "問題点3"]
        assert content.supports == ["支援内容1", "支援内容2", "支援内容3"]

    def test_unrecognisable_reply_fails_both_stages(self):
        assert parse_draft("申し訳ありませんが、その依頼にはお答えできません。") is None


class TestBuildPrompt:
    def setup_method(self):
        self.patient = fixture_patient("1")

    def test_includes_patient_and_assessment(self):
        assessment = Assessment(
            health_status="血圧不安定",
            adl_mobility=AdlLevel.PARTIAL,
            adl_bathing=AdlLevel.COMPLETE,
        )
        prompt = build_prompt(self.patient, assessment, VisitType.BOTH)
        assert "鈴木 一郎" in prompt
        assert "血圧不安定" in prompt
        assert "移動ADL: 一部介助" in prompt
        assert "入浴ADL: 全介助" in prompt
        assert "看護・リハビリ" in prompt
        assert '"goals"' in prompt

    def test_blank_fields_read_as_no_information(self):
        prompt = build_prompt(self.patient, Assessment())
        assert "健康状態: 情報なし" in prompt
        assert "訪問種別" not in prompt


class TestDraftGenerator:
    def setup_method(self):
        self.patient = fixture_patient("1")
        self.assessment = Assessment(health_status="血圧不安定")

    def test_strict_reply_source(self):
        result = DraftGenerator(client=FakeClient(reply=STRICT_REPLY)).generate(self.patient, self.assessment)
        assert result.source is DraftSource.STRICT_JSON
        assert result.content.issues == ["血圧の変動", "下肢筋力の低下"]

    def test_heuristic_reply_source(self):
        result = DraftGenerator(client=FakeClient(reply=BULLET_REPLY)).generate(self.patient, self.assessment)
        assert result.source is DraftSource.HEURISTIC

    def test_service_error_yields_fallback(self):
        client = FakeClient(error=GenerationError("quota exceeded"))
        result = DraftGenerator(client=client).generate(self.patient, self.assessment)
        assert result.source is DraftSource.FALLBACK
        assert result.content == fallback_draft()
        assert len(client.prompts) == 1

    def test_client_exception_yields_fallback(self):
        client = FakeClient(raises=RuntimeError("boom"))
        result = DraftGenerator(client=client).generate(self.patient, self.assessment)
        assert result.source is DraftSource.FALLBACK

    def test_unparseable_reply_yields_fallback(self):
        result = DraftGenerator(client=FakeClient(reply="了解しました。")).generate(self.patient, self.assessment)
        assert result.source is DraftSource.FALLBACK
        assert [len(result.content.goals), len(result.content.issues), len(result.content.supports)] == [3, 3, 3]

    def test_fallback_copies_are_independent(self):
        first = fallback_draft()
        first.goals.append("追加")
        assert "追加" not in fallback_draft().goals


class TestGenerationClient:
    def setup_method(self):
        self.client = GenerationClient()

    def test_request_body_carries_safety_settings(self):
        body = self.client.request_body("prompt")
        assert body["contents"][0]["parts"][0]["text"] == "prompt"
        categories = [s["category"] for s in body["safetySettings"]]
        assert categories == list(HARM_CATEGORIES)
        assert all(s["threshold"] == "BLOCK_MEDIUM_AND_ABOVE" for s in body["safetySettings"])

    def test_missing_api_key_is_an_error(self):
        self.client.api_key = None
        result = self.client.complete("prompt")
        assert not result.is_ok
        assert isinstance(result.error, GenerationError)

    def test_timeout_is_an_error(self, monkeypatch):
        def timeout_post(self, *args, **kwargs):
            raise httpx.ReadTimeout("timed out")

        monkeypatch.setattr(httpx.Client, "post", timeout_post)
        self.client.api_key = "test-key"
        result = self.client.complete("prompt")
        assert not result.is_ok
        assert "timed out" in str(result.error)

    @pytest.mark.parametrize("payload", [
        {"candidates": []},
        {"promptFeedback": {"blockReason": "SAFETY"}},
        {"candidates": [{"content": {"parts": [{"text": "   "}]}}]},
    ])
    def test_empty_or_blocked_reply_is_an_error(self, monkeypatch, payload):
        request = httpx.Request("POST", "https://example.test")

        def fake_post(self, *args, **kwargs):
            return httpx.Response(200, json=payload, request=request)

        monkeypatch.setattr(httpx.Client, "post", fake_post)
        self.client.api_key = "test-key"
        assert not self.client.complete("prompt").is_ok

    def test_returns_candidate_text(self, monkeypatch):
        request = httpx.Request("POST", "https://example.test")
        payload = {"candidates": [{"content": {"parts": [{"text": "{\"goals\": "}, {"text": "[]}"}]}}]}

        def fake_post(self, *args, **kwargs):
            return httpx.Response(200, json=payload, request=request)

        monkeypatch.setattr(httpx.Client, "post", fake_post)
        self.client.api_key = "test-key"
        assert self.client.complete("prompt").unwrap() == '{"goals": []}'
