"""Reasoning service router: Anthropic, OpenAI and Gemini behind one call.

Routes by model prefix:
  - claude-* → Anthropic Messages API
  - gpt-*    → OpenAI Responses API
  - anything else → Google GenAI SDK

``llm_call`` never raises; it returns an LLMResult with ``error`` set.
``reason()`` is what the pipeline uses and turns an errored or empty result
into ReasoningError.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .api_keys import api_keys_manager
from .errors import ReasoningError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 4000


@dataclass
class LLMResult:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_s: float = 0.0
    error: Optional[str] = None


def reasoning_provider(model: str) -> str:
    """Return the provider name a model id is routed to."""
    if model.startswith("claude-"):
        return "anthropic"
    if model.startswith("gpt-"):
        return "openai"
    return "gemini"


def _usage(usage, input_attr: str, output_attr: str) -> tuple[int, int]:
    if usage is None:
        return 0, 0
    return getattr(usage, input_attr, 0) or 0, getattr(usage, output_attr, 0) or 0


# Each completion helper returns (text, input_tokens, output_tokens) and lets
# SDK exceptions propagate to llm_call.

def _complete_anthropic(api_key, model, system_prompt, user_prompt, temperature, max_output_tokens):
    import anthropic

    kwargs: dict = {
        "model": model,
        "max_tokens": max_output_tokens or DEFAULT_MAX_TOKENS,
        "temperature": temperature,
        "messages": [{"role": "user", "content": user_prompt}],
    }
    if system_prompt:
        kwargs["system"] = system_prompt
    response = anthropic.Anthropic(api_key=api_key).messages.create(**kwargs)
    text = "".join(getattr(block, "text", "") for block in (response.content or []))
    return (text, *_usage(getattr(response, "usage", None), "input_tokens", "output_tokens"))


def _complete_openai(api_key, model, system_prompt, user_prompt, temperature, max_output_tokens):
    from openai import OpenAI

    kwargs: dict = {
        "model": model,
        "input": [{"role": "user", "content": [{"type": "input_text", "text": user_prompt}]}],
        "temperature": temperature,
    }
    if system_prompt:
        kwargs["instructions"] = system_prompt
    if max_output_tokens:
        kwargs["max_output_tokens"] = max_output_tokens
    response = OpenAI(api_key=api_key).responses.create(**kwargs)
    usage = _usage(getattr(response, "usage", None), "input_tokens", "output_tokens")
    return (response.output_text or "", *usage)


def _complete_gemini(api_key, model, system_prompt, user_prompt, temperature, max_output_tokens):
    from google import genai
    from google.genai import types

    config = types.GenerateContentConfig(
        system_instruction=system_prompt or None,
        temperature=temperature,
        max_output_tokens=max_output_tokens or None,
    )
    response = genai.Client(api_key=api_key).models.generate_content(
        model=model,
        contents=[types.Content(role="user", parts=[types.Part.from_text(text=user_prompt)])],
        config=config,
    )
    usage = _usage(getattr(response, "usage_metadata", None), "prompt_token_count", "candidates_token_count")
    return (response.text or "", *usage)


_COMPLETIONS: dict[str, Callable] = {
    "anthropic": _complete_anthropic,
    "openai": _complete_openai,
    "gemini": _complete_gemini,
}


def llm_call(
    model: str,
    user_prompt: str,
    system_prompt: Optional[str] = None,
    temperature: float = 0.0,
    max_output_tokens: Optional[int] = None,
) -> LLMResult:
    """Route an LLM call to the appropriate provider based on model name."""
    provider = reasoning_provider(model)
    api_key = api_keys_manager.get_key(provider)
    if not api_key:
        return LLMResult(text="", error=f"{api_keys_manager.env_var_for(provider)} not set")

    t0 = time.time()
    try:
        text, input_tokens, output_tokens = _COMPLETIONS[provider](
            api_key, model, system_prompt, user_prompt, temperature, max_output_tokens,
        )
    except Exception as e:
        logger.error(f"{provider} API error ({model}): {e}")
        return LLMResult(text="", error=str(e), duration_s=round(time.time() - t0, 2))

    return LLMResult(
        text=text,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        duration_s=round(time.time() - t0, 2),
    )


def reason(
    prompt: str,
    max_output_tokens: int,
    model: str = DEFAULT_MODEL,
    system_prompt: Optional[str] = None,
) -> str:
    """Text completion for the pipeline.

    Raises:
        ReasoningError: provider error or empty completion.
    """
    result = llm_call(model, prompt, system_prompt=system_prompt, max_output_tokens=max_output_tokens)
    if result.error:
        raise ReasoningError(f"Reasoning call failed ({model}): {result.error}")
    if not result.text.strip():
        raise ReasoningError(f"Reasoning call returned an empty completion ({model})")
    logger.info(
        f"Reasoning call ok ({model}): {result.input_tokens} in / "
        f"{result.output_tokens} out tokens, {result.duration_s}s"
    )
    return result.text
