"""openai_client.py – Summarization backend

The pipeline sees exactly one call, :pyfunc:`complete`: a prompt and a
:class:`~isummarize.settings.SamplingConfig` in, the completion text out.

* Model selection: argument > ``OPENAI_MODEL`` env var > ``"gpt-4o"``.
* One request per call with a per-request timeout. The SDK's retry loop is
  disabled (``max_retries=0``); a failed channel waits for the next cycle.
* Any SDK failure, or a response without text, raises
  :class:`~isummarize.errors.TransportError`.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import openai

from isummarize import cloud_logging as logging
from isummarize.errors import TransportError
from isummarize.settings import SamplingConfig

__all__ = [
    "chat_completion",
    "complete",
    "configure",
]

_OPERATION = "chat.completions.create"
_DEFAULT_MODEL: str = "gpt-4o"

_API_KEY: Optional[str] = None
_TIMEOUT: float = 30.0


def configure(*, api_key: Optional[str] = None, timeout: Optional[float] = None) -> None:
    """Set the API key and per-request timeout used by subsequent calls."""
    global _API_KEY, _TIMEOUT  # noqa: PLW0603
    if api_key is not None:
        _API_KEY = api_key
    if timeout is not None:
        _TIMEOUT = timeout


def _get_model(model: Optional[str] = None) -> str:
    return model or os.getenv("OPENAI_MODEL") or _DEFAULT_MODEL


def chat_completion(
    messages: List[Dict[str, str]],
    *,
    model: Optional[str] = None,
    **sampling: Any,
) -> Dict[str, Any]:
    """Issue a single chat completion request and return the response as a dict.

    SDK exceptions propagate unchanged; :pyfunc:`complete` translates them.
    """
    client = openai.OpenAI(api_key=_API_KEY, timeout=_TIMEOUT, max_retries=0)
    resolved_model = _get_model(model)
    logging.log_text(
        f"Requesting completion from {resolved_model} ({len(messages)} message(s))",
        severity="DEBUG",
    )
    resp = client.chat.completions.create(model=resolved_model, messages=messages, **sampling)
    return resp.model_dump() if hasattr(resp, "model_dump") else resp


def complete(
    prompt: str,
    sampling: Optional[SamplingConfig] = None,
    *,
    model: Optional[str] = None,
) -> str:
    """Send *prompt* as a single user message and return the stripped completion text."""
    sampling = sampling or SamplingConfig()
    messages = [{"role": "user", "content": prompt}]

    try:
        response = chat_completion(messages, model=model, **sampling.as_kwargs())
    except openai.OpenAIError as exc:
        logging.log_text(f"Completion request failed: {exc}", severity="ERROR")
        raise TransportError(_OPERATION, exc) from exc

    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        logging.log_text("Completion response carried no message text", severity="WARNING")
        raise TransportError(_OPERATION, "empty response") from exc

    return (content or "").strip()
