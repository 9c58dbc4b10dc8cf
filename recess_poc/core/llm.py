# recess_poc/core/llm.py
from dataclasses import dataclass
from typing import Optional

from openai import OpenAI

from recess_poc.config import settings
from recess_poc.core.logging import get_logger
from recess_poc.core.observability import LLM_COST, LLM_TOKENS

log = get_logger("llm")

# USD per 1M tokens (prompt, completion)
PRICING = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
}

@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0

@dataclass
class Completion:
    content: str
    model: str
    usage: Usage

def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    p_in, p_out = PRICING.get(model.split("/")[-1], PRICING["gpt-4o-mini"])
    return (prompt_tokens * p_in + completion_tokens * p_out) / 1_000_000

class LLMNotConfigured(RuntimeError):
    pass

def _client() -> OpenAI:
    if not settings.openrouter_api_key:
        raise LLMNotConfigured("OPENROUTER_API_KEY is not set")
    return OpenAI(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        max_retries=0,
        default_headers={"HTTP-Referer": settings.site_url, "X-Title": "Recess POC"},
    )

def _route(model: str) -> str:
    # OpenRouter namespaces models by vendor
    return model if "/" in model else f"openai/{model}"

def chat_complete(
    system: str,
    user: str,
    *,
    model: str = "gpt-4o-mini",
    temperature: float = 0.2,
    max_tokens: int = 700,
    operation: Optional[str] = None,
) -> Completion:
    resp = _client().chat.completions.create(
        model=_route(model),
        messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    u = resp.usage
    prompt_tokens = getattr(u, "prompt_tokens", 0) or 0
    completion_tokens = getattr(u, "completion_tokens", 0) or 0
    usage = Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=getattr(u, "total_tokens", 0) or prompt_tokens + completion_tokens,
        estimated_cost=estimate_cost(model, prompt_tokens, completion_tokens),
    )
    op = operation or "chat"
    LLM_TOKENS.labels(model=model, operation=op).inc(usage.total_tokens)
    LLM_COST.labels(model=model, operation=op).inc(usage.estimated_cost)
    log.info("llm_call", extra={"model": model, "operation": op, "tokens": usage.total_tokens})
    return Completion(content=(resp.choices[0].message.content or "").strip(), model=model, usage=usage)

def upstream_status(exc: BaseException) -> Optional[int]:
    """HTTP status carried by an OpenAI SDK error, if any."""
    return getattr(exc, "status_code", None) or getattr(exc, "status", None)
