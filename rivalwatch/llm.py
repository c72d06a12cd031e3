"""Thin wrapper around the Anthropic Messages API used by every pipeline stage."""

from __future__ import annotations

import json
import re

import anthropic


class LLMClient:
    """Single-turn completions against one configured Claude model.

    Callers treat every call as unreliable: timeouts, API errors and
    empty responses all surface as exceptions for them to degrade on.
    """

    def __init__(self, client: anthropic.Anthropic, model: str, max_tokens: int = 1024):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    @property
    def version(self) -> str:
        return self.model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        if not response.content:
            raise ValueError("LLM response is empty")
        text = response.content[0].text.strip()
        if not text:
            raise ValueError("LLM response is empty")
        return text


def extract_json(text: str):
    """Parse the first JSON object in a model response.

    Models sometimes wrap JSON in prose or code fences, so fall back to
    the outermost ``{...}`` span before giving up.
    """
    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if json_match:
        return json.loads(json_match.group())
    return json.loads(text)
