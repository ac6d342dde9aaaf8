#!/usr/bin/env python3
"""
completions_client.py

Chat-completion helpers used by the variable-suggestion oracle. Two
frameworks are supported:

    http     ← any OpenAI-compatible /chat/completions endpoint via requests
    openai   ← the official OpenAI SDK

Environment variables for the http framework (read from .env when present):

    TEMPLATER_LLM_URL        ← e.g. https://openrouter.ai/api/v1/chat/completions
    TEMPLATER_LLM_API_KEY    ← bearer key for that endpoint

Environment variables for OpenAI:

    OPENAI_API_KEY           ← your OpenAI API key

Usage:
    python3 -m templater.llm.completions_client --framework http --prompt "..."
"""

from __future__ import annotations

import argparse
import os
from typing import Dict, Optional, Tuple

import requests

from templater.config import FRAMEWORK, MODEL, dbg

DEFAULT_URL = "https://openrouter.ai/api/v1/chat/completions"


class CompletionsClient:
    """Client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, model: str = MODEL, url: Optional[str] = None, timeout: int = 120):
        self.model = model
        self.service_costs = 0.0
        self.timeout = timeout

        self.api_key = os.environ.get("TEMPLATER_LLM_API_KEY")
        self.url = (url or os.environ.get("TEMPLATER_LLM_URL") or DEFAULT_URL).rstrip("/")
        if not self.api_key:
            raise RuntimeError("Missing TEMPLATER_LLM_API_KEY in environment.")

        self.header = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "docx-templater",
        }

        # USD per million tokens
        self.pricing = {
            "google/gemini-2.5-pro": {"input": 1.25, "output": 10.0},
            "google/gemini-2.5-flash": {"input": 0.30, "output": 2.5},
            "gpt-4o": {"input": 5.0, "output": 15.0},
            "gpt-4o-mini": {"input": 0.15, "output": 0.6},
        }

    def get_completion(
        self,
        prompt: str,
        json_output: bool = False,
        system: Optional[str] = None,
        temperature: float = 0.1,
    ) -> Tuple[str, Dict[str, int]]:
        """Send a single chat completion request and return (reply, usage)."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        payload = {"model": self.model, "messages": messages, "temperature": temperature}
        if json_output:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = requests.post(self.url, json=payload, headers=self.header, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise RuntimeError(f"Chat completion request failed: {exc}") from exc
        return self._finalize_and_extract(data)

    def _finalize_and_extract(self, data: dict) -> Tuple[str, Dict[str, int]]:
        """Compute cost and return (reply, usage)."""
        choices = data.get("choices") or []
        if not choices:
            raise RuntimeError(f"No choices in chat completion response: {data}")
        content = (choices[0].get("message") or {}).get("content") or ""

        raw_usage = data.get("usage") or {}
        usage = {
            "prompt_tokens": int(raw_usage.get("prompt_tokens", 0)),
            "completion_tokens": int(raw_usage.get("completion_tokens", 0)),
        }
        model_props = self.pricing.get(self.model, {})
        prompt_cost = usage["prompt_tokens"] * model_props.get("input", 0) / 1_000_000
        completion_cost = usage["completion_tokens"] * model_props.get("output", 0) / 1_000_000
        self.service_costs += prompt_cost + completion_cost
        dbg(
            f"Completion [{self.model}]: input {usage['prompt_tokens']} tok, "
            f"output {usage['completion_tokens']} tok, total cost ${self.service_costs:.6f}"
        )
        return content, usage


def get_openai_completion(
    prompt: str,
    model: str,
    json_output: bool = False,
    system: Optional[str] = None,
) -> Tuple[str, Dict[str, int]]:
    """Fetch a completion from OpenAI's API and return (reply, usage)."""
    from openai import OpenAI

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("Missing OPENAI_API_KEY in environment.")
    client = OpenAI(api_key=api_key)
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    params = {"model": model, "messages": messages}
    if json_output:
        params["response_format"] = {"type": "json_object"}
    resp = client.chat.completions.create(**params)
    usage = {
        "prompt_tokens": resp.usage.prompt_tokens,
        "completion_tokens": resp.usage.completion_tokens,
    }
    return resp.choices[0].message.content, usage


def complete(
    prompt: str,
    framework: str = FRAMEWORK,
    model: str = MODEL,
    system: Optional[str] = None,
) -> str:
    """Dispatch to the requested framework and return the completion text."""
    if framework == "http":
        content, _ = CompletionsClient(model=model).get_completion(prompt, system=system)
        return content
    if framework == "openai":
        content, _ = get_openai_completion(prompt, model, system=system)
        return content
    raise ValueError(f"Unknown framework: {framework}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Call an LLM using different frameworks")
    parser.add_argument("--framework", choices=["http", "openai"], default=FRAMEWORK)
    parser.add_argument("--model", default=MODEL, help="Model name for the chosen framework")
    parser.add_argument("--prompt", default="Reply with the JSON array [\"ok\"].")
    args = parser.parse_args()

    reply = complete(args.prompt, args.framework, args.model)
    print("\n=== Assistant Reply ===\n")
    print(reply)
