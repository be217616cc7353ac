"""Shared fixtures: a scripted stand-in for LLMClient."""

import asyncio
import json

import pytest

from llm.client import LLMProvider, LLMResponse


class FakeLLMClient:
    """Returns canned replies; records every prompt it receives.

    `reply` is a string, a dict (sent as JSON), or a callable taking the
    user prompt and returning either.
    """

    def __init__(self, reply=None, error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def call(self, system_prompt, user_prompt, max_tokens=2000, temperature=0.2):
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        reply = self.reply(user_prompt) if callable(self.reply) else self.reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return LLMResponse(
            provider=LLMProvider.CLAUDE,
            raw_content=reply or "",
            model="fake-model",
            input_tokens=0,
            output_tokens=0,
        )


@pytest.fixture
def fake_llm():
    return FakeLLMClient
