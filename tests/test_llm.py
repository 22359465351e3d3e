from __future__ import annotations

import json
from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest

from ddx_survey.exceptions import GenerationError, SchemaValidationFailure
from ddx_survey.services import llm
from tests.factories import llm_response_json


class TestParseDifferential:
    def test_valid_response(self) -> None:
        result = llm.parse_differential(llm_response_json([1, 2, 3]))

        assert [d.likelihoodRank for d in result.diagnoses] == [1, 2, 3]
        first = result.diagnoses[0]
        assert first.diagnosis == "Condition 1"
        assert first.rationale == "Evidence 1"
        assert first.icd10Code == "A91"
        assert first.diagnosticTests == ["NS1 antigen", "Complete blood count"]
        assert result.missing_information == []

    def test_fenced_response_with_preamble(self) -> None:
        text = "Here is the differential:\n```json\n" + llm_response_json([1, 2]) + "\n```\nHope this helps."

        result = llm.parse_differential(text)

        assert len(result.diagnoses) == 2

    def test_trailing_text_after_json(self) -> None:
        text = llm_response_json([1, 2, 3]) + "\n\nLet me know if you need more detail."

        result = llm.parse_differential(text)

        assert [d.likelihoodRank for d in result.diagnoses] == [1, 2, 3]

    def test_unsorted_ranks_are_sorted(self) -> None:
        result = llm.parse_differential(llm_response_json([3, 1, 2]))

        assert [d.likelihoodRank for d in result.diagnoses] == [1, 2, 3]
        assert result.diagnoses[0].diagnosis == "Condition 1"

    def test_missing_information_kept(self) -> None:
        result = llm.parse_differential(
            llm_response_json([1], missing_information=["Travel history", "Platelet count"])
        )

        assert result.missing_information == ["Travel history", "Platelet count"]

    @pytest.mark.parametrize("ranks", [[], [1, 2, 3, 4, 5, 6], [1, 3], [2, 3], [1, 1]])
    def test_schema_violations(self, ranks) -> None:
        with pytest.raises(SchemaValidationFailure):
            llm.parse_differential(llm_response_json(ranks))

    def test_missing_required_field(self) -> None:
        payload = json.loads(llm_response_json([1]))
        del payload["differentialDiagnosis"][0]["icd10Code"]

        with pytest.raises(SchemaValidationFailure):
            llm.parse_differential(json.dumps(payload))

    @pytest.mark.parametrize("text", ["", "not json at all", '{"differentialDiagnosis": ['])
    def test_unparseable(self, text: str) -> None:
        with pytest.raises(SchemaValidationFailure):
            llm.parse_differential(text)

    def test_configured_bounds(self) -> None:
        with pytest.raises(SchemaValidationFailure):
            llm.parse_differential(llm_response_json([1, 2]), min_diagnoses=3, max_diagnoses=5)


def test_prompt_keeps_vignette_text_verbatim() -> None:
    prompt = llm.build_prompt("Fever {3 days} and $rash", min_diagnoses=2, max_diagnoses=4)

    assert prompt.endswith("Fever {3 days} and $rash")
    assert "between 2 and 4 diagnoses" in prompt
    assert "differentialDiagnosis" in prompt


class TestGenerateDifferential:
    def test_dispatches_to_provider(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []

        def fake_call(prompt, model_name, temperature, api_key):
            calls.append((model_name, temperature, api_key))
            return llm_response_json([1, 2, 3, 4, 5])

        monkeypatch.setitem(llm.PROVIDERS, "openrouter", fake_call)

        result = llm.generate_differential_diagnoses(
            "Vignette", model_name="some/model", temperature=0.1, api_key="sk-test"
        )

        assert calls == [("some/model", 0.1, "sk-test")]
        assert len(result.diagnoses) == 5

    def test_unknown_provider(self) -> None:
        with pytest.raises(GenerationError):
            llm.generate_differential_diagnoses(
                "Vignette", model_name="m", temperature=0.1, api_key="k", provider="carrier-pigeon"
            )

    def test_invalid_answer_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(llm.PROVIDERS, "anthropic", lambda *args: "I cannot help with that.")

        with pytest.raises(SchemaValidationFailure):
            llm.generate_differential_diagnoses(
                "Vignette", model_name="m", temperature=0.1, api_key="k", provider="anthropic"
            )


class TestOpenRouterCall:
    def _client(self, create):
        return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    def test_requests_structured_output(self, monkeypatch: pytest.MonkeyPatch) -> None:
        captured = {}

        def create(**kwargs):
            captured.update(kwargs)
            message = SimpleNamespace(content=llm_response_json([1]))
            return SimpleNamespace(choices=[SimpleNamespace(message=message)])

        monkeypatch.setattr(llm, "get_openrouter_client", lambda api_key: self._client(create))

        text = llm._call_openrouter("prompt", "google/gemini", 0.1, "sk-test")

        assert json.loads(text)["differentialDiagnosis"][0]["likelihoodRank"] == 1
        assert captured["model"] == "google/gemini"
        assert captured["temperature"] == 0.1
        assert captured["response_format"]["type"] == "json_schema"
        assert captured["messages"] == [{"role": "user", "content": "prompt"}]

    def test_sdk_error_becomes_generation_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def create(**kwargs):
            raise openai.OpenAIError("connection reset")

        monkeypatch.setattr(llm, "get_openrouter_client", lambda api_key: self._client(create))

        with pytest.raises(GenerationError) as exc_info:
            llm._call_openrouter("prompt", "model", 0.1, "sk-test")

        assert not isinstance(exc_info.value, SchemaValidationFailure)

    def test_no_choices(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            llm, "get_openrouter_client",
            lambda api_key: self._client(lambda **kwargs: SimpleNamespace(choices=[]))
        )

        with pytest.raises(SchemaValidationFailure):
            llm._call_openrouter("prompt", "model", 0.1, "sk-test")


class TestAnthropicCall:
    def _client(self, create):
        return SimpleNamespace(messages=SimpleNamespace(create=create))

    def test_joins_text_blocks(self, monkeypatch: pytest.MonkeyPatch) -> None:
        content = [
            SimpleNamespace(type="text", text='{"differentialDiagnosis": '),
            SimpleNamespace(type="tool_use", text="ignored"),
            SimpleNamespace(type="text", text="[]}"),
        ]
        monkeypatch.setattr(
            llm, "get_anthropic_client",
            lambda api_key: self._client(lambda **kwargs: SimpleNamespace(content=content))
        )

        text = llm._call_anthropic("prompt", "claude", 0.1, "key")

        assert text == '{"differentialDiagnosis": []}'

    def test_sdk_error_becomes_generation_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def create(**kwargs):
            request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
            raise anthropic.APIConnectionError(request=request)

        monkeypatch.setattr(llm, "get_anthropic_client", lambda api_key: self._client(create))

        with pytest.raises(GenerationError):
            llm._call_anthropic("prompt", "claude", 0.1, "key")
