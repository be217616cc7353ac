"""
Text-completion transport for condition suggestions.

Providers: Claude (Anthropic API), OpenAI, and Claude on AWS Bedrock.
The oracle sends one system + user prompt and parses the JSON object in
the reply itself, so no tool use or streaming is needed. SDK-level
retries are disabled: a failed or slow call simply yields no LLM
suggestions, and the caller bounds the wait with its own timeout.

BAA (Business Associate Agreement) compliance:
  Lab values and member demographics are PHI. In production
  (REQUIRE_AUTH=true) only providers listed in BAA_PROVIDERS
  (default: bedrock) may be used.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

_BAA_PROVIDERS: set[str] = {
    p.strip().lower()
    for p in os.getenv("BAA_PROVIDERS", "bedrock").split(",")
    if p.strip()
}
_REQUIRE_AUTH = os.getenv("REQUIRE_AUTH", "").lower() == "true"

_DEFAULT_CLAUDE_MODEL = "claude-haiku-4-5-20251001"
_DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

# Anthropic model IDs whose Bedrock profile ID doesn't follow "<model>-v1:0"
_BEDROCK_PROFILE_OVERRIDES = {
    "claude-sonnet-4-6": "anthropic.claude-sonnet-4-6",
    "claude-sonnet-4-5": "anthropic.claude-sonnet-4-5-20250929-v1:0",
}


def _bedrock_geo(region: str) -> str:
    geo = region.split("-", 1)[0]
    return geo if geo in ("us", "eu", "ap") else "us"


def to_bedrock_model_id(model: str, region: str = "us-east-1") -> str:
    """Map an Anthropic model ID to a cross-region Bedrock inference profile."""
    if model.startswith(("us.", "eu.", "ap.")):
        return model
    if not model.startswith("anthropic."):
        model = _BEDROCK_PROFILE_OVERRIDES.get(model, f"anthropic.{model}-v1:0")
    return f"{_bedrock_geo(region)}.{model}"


class LLMProvider(str, Enum):
    CLAUDE = "claude"
    OPENAI = "openai"
    BEDROCK = "bedrock"


@dataclass
class LLMResponse:
    """Raw response from an LLM API call."""

    provider: LLMProvider
    raw_content: str
    model: str
    input_tokens: int
    output_tokens: int

    @property
    def text_content(self) -> str:
        return self.raw_content


class LLMClient:
    """Single-shot text completion. Built per request from EngineSettings."""

    def __init__(
        self,
        provider: LLMProvider,
        api_key: str | dict,
        model: Optional[str] = None,
    ):
        if _REQUIRE_AUTH and provider.value not in _BAA_PROVIDERS:
            raise ValueError(
                f"Provider '{provider.value}' is not BAA-compliant. "
                f"Allowed providers: {', '.join(sorted(_BAA_PROVIDERS))}."
            )
        self.provider = provider
        self.api_key = api_key
        if model:
            self.model = model
        elif provider == LLMProvider.OPENAI:
            self.model = _DEFAULT_OPENAI_MODEL
        else:
            self.model = _DEFAULT_CLAUDE_MODEL

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """Send one prompt pair and return the reply text with token usage."""
        if self.provider == LLMProvider.OPENAI:
            complete = self._complete_openai
        elif self.provider == LLMProvider.BEDROCK:
            complete = self._complete_bedrock
        else:
            complete = self._complete_claude
        response = await complete(system_prompt, user_prompt, max_tokens, temperature)
        logger.debug(
            "LLM %s/%s used %d input, %d output tokens",
            response.provider.value,
            response.model,
            response.input_tokens,
            response.output_tokens,
        )
        return response

    async def _complete_claude(
        self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float
    ) -> LLMResponse:
        import anthropic

        client = anthropic.AsyncAnthropic(api_key=self.api_key, max_retries=0)
        message = await client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        text = "".join(block.text for block in message.content if block.type == "text")
        return LLMResponse(
            provider=LLMProvider.CLAUDE,
            raw_content=text,
            model=message.model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )

    async def _complete_openai(
        self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float
    ) -> LLMResponse:
        import openai

        client = openai.AsyncOpenAI(api_key=self.api_key, max_retries=0)
        completion = await client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        usage = completion.usage
        return LLMResponse(
            provider=LLMProvider.OPENAI,
            raw_content=completion.choices[0].message.content or "",
            model=completion.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    def _bedrock_runtime(self):
        """boto3 Bedrock Runtime client.

        access_key "iam_role" means the default credential chain (ECS task
        role, instance profile, ...).
        """
        import boto3
        from botocore.config import Config

        creds = self.api_key
        if not isinstance(creds, dict):
            raise ValueError("Bedrock provider requires AWS credentials dict")

        kwargs = {
            "region_name": creds.get("region", "us-east-1"),
            "config": Config(retries={"max_attempts": 1}),
        }
        if creds.get("access_key") != "iam_role":
            kwargs["aws_access_key_id"] = creds["access_key"]
            kwargs["aws_secret_access_key"] = creds["secret_key"]
        return boto3.client("bedrock-runtime", **kwargs)

    async def _complete_bedrock(
        self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float
    ) -> LLMResponse:
        runtime = self._bedrock_runtime()
        region = self.api_key.get("region", "us-east-1")
        model_id = to_bedrock_model_id(self.model, region)

        def _converse():
            return runtime.converse(
                modelId=model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig={"maxTokens": max_tokens, "temperature": temperature},
            )

        # boto3 is synchronous
        response = await asyncio.get_running_loop().run_in_executor(None, _converse)

        blocks = response["output"]["message"]["content"]
        usage = response.get("usage", {})
        return LLMResponse(
            provider=LLMProvider.BEDROCK,
            raw_content="".join(b["text"] for b in blocks if "text" in b),
            model=model_id,
            input_tokens=usage.get("inputTokens", 0),
            output_tokens=usage.get("outputTokens", 0),
        )
