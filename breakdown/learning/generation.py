"""LLM-backed explanation generation for transcript chunks."""

from __future__ import annotations

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock
from openai import AsyncOpenAI

from breakdown.config import settings
from breakdown.errors import AuthError
from breakdown.learning.models import ExplanationRequest

SYSTEM_PROMPT = """\
You are a concise learning assistant. Create SHORT, PUNCHY insights using bullet points.

RULES:
- Maximum 3-4 bullet points
- Each bullet: 1-2 sentences MAX
- Start with the insight, not meta-commentary
- Use **bold** for key concepts
- Focus on the "aha!" moments
- Make it scannable and memorable
- NO phrases like "In this segment" or "The speaker discusses"
- Get straight to the point

Example format:
• **Key Concept**: Quick insight or principle
• **Why it matters**: Real-world impact
• **Remember this**: Memorable takeaway"""

EMPTY_EXPLANATION = "No explanation generated"


def build_user_prompt(request: ExplanationRequest) -> str:
    """Format the chunk, its title and the preceding chunk as the user turn."""
    parts = [f'Video: "{request.title or "Educational Video"}"']
    if request.previous_context:
        parts.append(f'Previously:\n"{request.previous_context}"')
    parts.append(f'Transcript:\n"{request.text}"')
    parts.append("Give me the key insights as bullet points. Be direct and concise.")
    return "\n\n".join(parts)


async def generate_explanation(request: ExplanationRequest, api_key: str | None = None) -> str:
    """Generate bullet-point insights for one chunk with the configured provider.

    Args:
        request: Chunk text plus title and previous-chunk context.
        api_key: Key for the configured provider; falls back to settings.

    Returns:
        The generated explanation text.

    Raises:
        AuthError: No API key is available for the provider.
    """
    if settings.llm_provider == "anthropic":
        return await _generate_anthropic(request, api_key or settings.anthropic_api_key)
    return await _generate_openai(request, api_key or settings.openai_api_key)


async def _generate_openai(request: ExplanationRequest, api_key: str) -> str:
    if not api_key:
        raise AuthError("OpenAI API key not configured")

    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=settings.explanation_model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(request)},
        ],
        temperature=settings.explanation_temperature,
        max_tokens=settings.explanation_max_tokens,
    )
    if not response.choices:
        return EMPTY_EXPLANATION
    return response.choices[0].message.content or EMPTY_EXPLANATION


async def _generate_anthropic(request: ExplanationRequest, api_key: str) -> str:
    if not api_key:
        raise AuthError("Anthropic API key not configured")

    client = AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=settings.explanation_model,
        max_tokens=settings.explanation_max_tokens,
        temperature=settings.explanation_temperature,
        system=SYSTEM_PROMPT,
        messages=[{"role": "user", "content": build_user_prompt(request)}],
    )

    # Only plain text is requested, so the first block should be a TextBlock
    block = response.content[0] if response.content else None
    if not isinstance(block, TextBlock):
        return EMPTY_EXPLANATION
    return block.text or EMPTY_EXPLANATION
