"""
Token Tracker - OpenAI usage and cost logging

Extracts token usage from chat completion responses and estimates the cost
of each classification/analysis call.
"""

from typing import Any, Dict

from utils.screener_logger import get_screener_logger

logger = get_screener_logger()

# USD per 1K tokens
MODEL_PRICING = {
    "gpt-4o": {"input": 0.0025, "output": 0.01},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "default": {"input": 0.01, "output": 0.03},
}


def _pricing_for(model: str) -> Dict[str, float]:
    # Dated snapshots (gpt-4o-2024-08-06) share the base model's price
    for name in sorted(MODEL_PRICING, key=len, reverse=True):
        if name != "default" and model.startswith(name):
            return MODEL_PRICING[name]
    return MODEL_PRICING["default"]


def estimate_cost(model: str, input_tokens: int = 0, output_tokens: int = 0) -> float:
    """Estimate the USD cost of one call."""
    pricing = _pricing_for(model or "")
    return (input_tokens / 1000) * pricing["input"] + (output_tokens / 1000) * pricing["output"]


def extract_token_usage(response, model: str = "") -> Dict[str, Any]:
    """
    Extract token usage from an OpenAI chat completion.

    Returns:
        Dict with model, input_tokens, output_tokens, total_tokens, estimated_cost_usd
    """
    usage = getattr(response, "usage", None)
    model = getattr(response, "model", None) or model
    input_tokens = getattr(usage, "prompt_tokens", 0) or 0
    output_tokens = getattr(usage, "completion_tokens", 0) or 0
    total_tokens = getattr(usage, "total_tokens", 0) or (input_tokens + output_tokens)

    return {
        "model": model,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": total_tokens,
        "estimated_cost_usd": estimate_cost(model, input_tokens, output_tokens),
    }


def log_token_usage(operation: str, response, model: str = "") -> Dict[str, Any]:
    """Log the usage of one call and return it."""
    usage = extract_token_usage(response, model)
    logger.log_info(
        "openai",
        f"{operation}: {usage['model']} {usage['total_tokens']} tokens, ${usage['estimated_cost_usd']:.6f}"
    )
    return usage
