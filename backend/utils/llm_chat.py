"""
LLM text generation using Google Generative AI (Gemini).
Uses LLM_API_KEY from environment (Gemini API key from Google AI Studio).
"""
import asyncio
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash-exp"

# Sampling tuned for short creative copy
GENERATION_CONFIG = {
    "temperature": 0.9,
    "top_k": 40,
    "top_p": 0.95,
    "max_output_tokens": 1000,
}


def _get_api_key() -> Optional[str]:
    return (os.environ.get("LLM_API_KEY") or "").strip() or None


def get_model_name() -> str:
    model = (os.environ.get("LLM_MODEL") or "").strip()
    return model if model and "gemini" in model else DEFAULT_MODEL


def _sync_chat(
    system_prompt: Optional[str],
    user_text: str,
    model: str,
    generation_config: dict,
) -> str:
    """Synchronous completion using Google Generative AI."""
    import google.generativeai as genai
    api_key = _get_api_key()
    if not api_key:
        raise ValueError("LLM_API_KEY not found in environment")
    genai.configure(api_key=api_key)
    gemini = genai.GenerativeModel(
        model,
        system_instruction=system_prompt or None,
        generation_config=generation_config,
    )
    response = gemini.generate_content(user_text)
    if not response or not response.text:
        raise ValueError("Empty response from LLM")
    return response.text


async def chat(
    system_prompt: Optional[str],
    user_text: str,
    model: Optional[str] = None,
    generation_config: Optional[dict] = None,
) -> str:
    """Async completion. Runs sync SDK in thread pool."""
    model_name = model or get_model_name()
    config = generation_config or GENERATION_CONFIG
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        lambda: _sync_chat(system_prompt, user_text, model_name, config),
    )
