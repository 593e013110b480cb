"""
Tests for generation.py - structured-text parsing and the step executor.
"""
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from gtm_intel.core.errors import ConfigurationError, ParseError, UpstreamCallError
from gtm_intel.services.generation import GenerationStepExecutor, parse_structured_text
from gtm_intel.services.llm import build_llm_client

from tests.fixtures.research_fixtures import json_completion, make_completion


class TestParseStructuredText:
    def test_plain_json_object(self):
        assert parse_structured_text('{"a": 1}') == {"a": 1}

    def test_plain_json_array(self):
        assert parse_structured_text("[1, 2]") == [1, 2]

    def test_fenced_json(self):
        raw = 'Here you go:\n```json\n{"summary": "ok"}\n```\nThanks'
        assert parse_structured_text(raw) == {"summary": "ok"}

    def test_json_surrounded_by_prose(self):
        raw = 'Sure! {"summary": "ok", "tags": ["a"]} Let me know.'
        assert parse_structured_text(raw) == {"summary": "ok", "tags": ["a"]}

    def test_prose_raises_parse_error_with_raw_text(self):
        with pytest.raises(ParseError) as exc:
            parse_structured_text("I could not find anything about this company.")
        assert exc.value.raw_text == "I could not find anything about this company."

    def test_empty_text_raises_parse_error(self):
        with pytest.raises(ParseError):
            parse_structured_text("   ")


class TestGenerationStepExecutor:
    def _executor(self, settings, create):
        client = MagicMock()
        client.chat.completions.create = create
        return GenerationStepExecutor(client, settings), client

    def test_sends_role_and_prompt(self, settings):
        create = MagicMock(return_value=json_completion({"summary": "ok"}))
        executor, _ = self._executor(settings, create)

        assert executor.execute("You are a researcher.", "Research acme.com") == {"summary": "ok"}

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"] == [
            {"role": "system", "content": "You are a researcher."},
            {"role": "user", "content": "Research acme.com"},
        ]

    def test_transport_failure_is_upstream_call_error(self, settings):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        create = MagicMock(side_effect=openai.APIConnectionError(request=request))
        executor, _ = self._executor(settings, create)

        with pytest.raises(UpstreamCallError):
            executor.execute("role", "prompt")

    def test_non_json_reply_is_parse_error(self, settings):
        create = MagicMock(return_value=make_completion("No idea, sorry."))
        executor, _ = self._executor(settings, create)

        with pytest.raises(ParseError) as exc:
            executor.execute("role", "prompt")
        assert "No idea" in exc.value.raw_text

    def test_no_choices_is_parse_error(self, settings):
        response = MagicMock()
        response.choices = []
        executor, _ = self._executor(settings, MagicMock(return_value=response))

        with pytest.raises(ParseError):
            executor.execute("role", "prompt")


class TestBuildLLMClient:
    def test_missing_credentials(self, settings):
        bare = settings.model_copy(update={"OPENAI_API_KEY": None, "OPENROUTER_API_KEY": None})
        with pytest.raises(ConfigurationError):
            build_llm_client(bare)
        with pytest.raises(ConfigurationError):
            bare.require_llm_credentials()

    def test_openrouter_preferred(self, settings):
        routed = settings.model_copy(update={"OPENROUTER_API_KEY": "or-key"})
        client = build_llm_client(routed)
        assert "openrouter.ai" in str(client.base_url)

    def test_pipeline_needs_apollo_key(self, settings):
        settings.require_pipeline_credentials()
        with pytest.raises(ConfigurationError):
            settings.model_copy(update={"APOLLO_API_KEY": None}).require_pipeline_credentials()
