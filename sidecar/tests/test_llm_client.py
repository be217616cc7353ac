import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from llm import client as client_module
from llm.client import LLMClient, LLMProvider, to_bedrock_model_id


class TestBedrockModelId:
    def test_plain_anthropic_id(self):
        assert (
            to_bedrock_model_id("claude-haiku-4-5-20251001")
            == "us.anthropic.claude-haiku-4-5-20251001-v1:0"
        )

    def test_override_and_region_prefix(self):
        assert to_bedrock_model_id("claude-sonnet-4-6", "eu-west-1") == "eu.anthropic.claude-sonnet-4-6"

    def test_already_qualified(self):
        assert to_bedrock_model_id("us.anthropic.claude-x-v1:0", "eu-west-1") == "us.anthropic.claude-x-v1:0"
        assert to_bedrock_model_id("anthropic.claude-x-v1:0", "ap-northeast-1") == "ap.anthropic.claude-x-v1:0"

    def test_unknown_region_defaults_to_us(self):
        assert to_bedrock_model_id("claude-sonnet-4-6", "ca-central-1").startswith("us.")


class TestLLMClient:
    def test_default_models(self):
        assert LLMClient(LLMProvider.CLAUDE, "k").model == "claude-haiku-4-5-20251001"
        assert LLMClient(LLMProvider.OPENAI, "k").model == "gpt-4o-mini"
        assert LLMClient(LLMProvider.CLAUDE, "k", model="claude-sonnet-4-6").model == "claude-sonnet-4-6"

    def test_baa_guard(self):
        with patch.object(client_module, "_REQUIRE_AUTH", True):
            with pytest.raises(ValueError, match="not BAA-compliant"):
                LLMClient(LLMProvider.OPENAI, "k")
            LLMClient(LLMProvider.BEDROCK, {"access_key": "iam_role", "region": "us-east-1"})

    def test_claude_call(self):
        message = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"conditions": '),
                SimpleNamespace(type="text", text="[]}"),
            ],
            model="claude-haiku-4-5-20251001",
            usage=SimpleNamespace(input_tokens=120, output_tokens=8),
        )
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=message)

        with patch("anthropic.AsyncAnthropic", return_value=sdk) as ctor:
            response = asyncio.run(LLMClient(LLMProvider.CLAUDE, "k").call("sys", "user", max_tokens=100))

        ctor.assert_called_once_with(api_key="k", max_retries=0)
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]
        assert response.text_content == '{"conditions": []}'
        assert response.input_tokens == 120

    def test_bedrock_call(self):
        runtime = MagicMock()
        runtime.converse.return_value = {
            "output": {"message": {"content": [{"text": '{"conditions": []}'}]}},
            "usage": {"inputTokens": 50, "outputTokens": 5},
        }
        creds = {"access_key": "iam_role", "secret_key": "", "region": "eu-west-1"}

        with patch("boto3.client", return_value=runtime) as boto_client:
            response = asyncio.run(LLMClient(LLMProvider.BEDROCK, creds).call("sys", "user"))

        assert boto_client.call_args.kwargs["region_name"] == "eu-west-1"
        assert "aws_access_key_id" not in boto_client.call_args.kwargs
        assert runtime.converse.call_args.kwargs["modelId"].startswith("eu.anthropic.")
        assert response.provider == LLMProvider.BEDROCK
        assert response.text_content == '{"conditions": []}'
        assert response.output_tokens == 5

    def test_bedrock_requires_credentials_dict(self):
        with pytest.raises(ValueError):
            asyncio.run(LLMClient(LLMProvider.BEDROCK, "not-a-dict").call("sys", "user"))
