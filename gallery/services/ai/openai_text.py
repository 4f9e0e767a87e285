import re
import requests
from ...errors import ProviderError
from ...utils.logging import logger
from ...utils.timeout import run_with_timeout
from .template import template_description

DESCRIBE_PROMPT = (
    "Write exactly two concise sentences describing a photo that includes: {tags}. "
    "Each sentence must be under 22 words, end with a period, and avoid semicolons. "
    "Only describe what is actually present based on these tags - do not add imagined "
    "objects, settings, or mood elements."
)
CONTINUE_PROMPT = (
    "Continue and finish the description in exactly one short sentence (under 18 words). "
    "Do not repeat earlier text. Finish the thought naturally."
)
TERMINAL_PUNCT = re.compile(r"[.!?]$")


def chat_completion(messages, config, max_tokens, temperature=0.7):
    """POST a Chat Completions request and return the first choice dict."""
    api_key = config.get("OPENAI_API_KEY")
    if not api_key:
        raise ProviderError("OPENAI_API_KEY not configured")
    timeout_ms = config.get("OPENAI_TIMEOUT_MS")

    def call():
        return requests.post(
            config.get("OPENAI_API_URL") or "https://api.openai.com/v1/chat/completions",
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            json={
                "model": config.get("OPENAI_MODEL") or "gpt-3.5-turbo",
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
            timeout=timeout_ms / 1000.0 if timeout_ms and timeout_ms > 0 else None,
        )

    try:
        response = run_with_timeout(call, timeout_ms)
    except requests.RequestException as e:
        raise ProviderError(f"OpenAI request failed: {e}")
    if response.status_code != 200:
        raise ProviderError(f"OpenAI returned {response.status_code}", details=response.text[:500])
    payload = response.json()
    choices = payload.get("choices") or []
    if not choices:
        raise ProviderError("OpenAI returned no choices")
    choice = dict(choices[0])
    choice["usage"] = payload.get("usage")
    return choice


def _content(choice):
    return ((choice.get("message") or {}).get("content") or "").strip()


def generate_description(tags, config):
    if not tags:
        return "An image."
    max_tokens = config.get("OPENAI_MAX_TOKENS", 120)
    prompt = DESCRIBE_PROMPT.format(tags=", ".join(tags))
    choice = chat_completion([{"role": "user", "content": prompt}], config, max_tokens)
    description = _content(choice)

    truncated = choice.get("finish_reason") == "length" or not TERMINAL_PUNCT.search(description)
    if description and truncated:
        try:
            tail = _content(chat_completion(
                [
                    {"role": "system", "content": "You complete partial outputs succinctly without repeating."},
                    {"role": "user", "content": CONTINUE_PROMPT},
                    {"role": "assistant", "content": description},
                ],
                config,
                max(20, min(60, max_tokens // 2)),
            ))
            if tail:
                description = re.sub(r"\s+", " ", f"{description} {tail}").strip()
        except ProviderError as e:
            logger.warning(f"OpenAI continuation failed, keeping partial text: {e}")

    return description or template_description(tags)
