"""Template generator: asks an LLM to invent a trendy reel template."""

from __future__ import annotations

import json
from typing import Any, Union

import structlog
from langchain_anthropic import ChatAnthropic
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from reel_remix.config import settings
from reel_remix.editor import template_model
from reel_remix.exceptions import InvalidTemplate, TemplateGenerationFailed
from reel_remix.models.template import Template, TemplateGenerationResult

logger = structlog.get_logger()

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

TEMPLATE_SYSTEM_PROMPT = """\
You are an expert video editor AI. Analyze the structure of a popular \
15-second social media reel. Your task is to generate a JSON object \
representing a video template."""

TEMPLATE_USER_PROMPT = """\
Create a template with {min_shots} to {max_shots} shots. The total duration \
should be between {min_total:g} and {max_total:g} seconds. The shot descriptions \
should be varied and inspiring for a content creator. The captions should form \
a cohesive, short story or message. Make it feel like a real, trendy reel structure."""


TemplatePayload = Union[str, bytes, dict, BaseModel]


def parse_template_response(payload: TemplatePayload) -> Template:
    """Turn a raw generator response into a loaded ``Template``.

    Accepts a JSON string, a dict or a pydantic model shaped
    ``{"shots": [{duration, description, transition, effect, caption}, ...]}``.

    Raises:
        TemplateGenerationFailed: If the response is malformed or empty.
    """
    try:
        if isinstance(payload, (str, bytes)):
            data: Any = json.loads(payload)
        elif isinstance(payload, BaseModel):
            data = payload.model_dump()
        else:
            data = payload

        result = TemplateGenerationResult.model_validate(data)
        return template_model.load(shot.model_dump() for shot in result.shots)
    except (ValueError, ValidationError, InvalidTemplate) as exc:
        logger.warning("template_generator.malformed_response", error=str(exc))
        raise TemplateGenerationFailed(technical_details=str(exc)) from exc


def _build_llm():
    if settings.template_provider == "openai":
        return ChatOpenAI(
            model=settings.reasoning_model,
            api_key=settings.openai_api_key,
            temperature=settings.template_temperature,
        )
    return ChatAnthropic(
        model=settings.creative_model,
        api_key=settings.anthropic_api_key,
        temperature=settings.template_temperature,
        max_tokens=4096,
    )


async def generate_template() -> Template:
    """Call the configured LLM and return a freshly loaded template.

    Raises:
        TemplateGenerationFailed: On any call error or unusable response.
    """
    logger.info("template_generator.start", provider=settings.template_provider)

    try:
        template_llm = _build_llm().with_structured_output(TemplateGenerationResult)
        result = await template_llm.ainvoke(
            [
                {"role": "system", "content": TEMPLATE_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": TEMPLATE_USER_PROMPT.format(
                        min_shots=settings.min_shots,
                        max_shots=settings.max_shots,
                        min_total=settings.min_total_sec,
                        max_total=settings.max_total_sec,
                    ),
                },
            ]
        )
    except Exception as exc:
        logger.exception("template_generator.error")
        raise TemplateGenerationFailed(technical_details=str(exc)) from exc

    if result is None:
        raise TemplateGenerationFailed(technical_details="generator returned no result")

    template = parse_template_response(result)
    logger.info(
        "template_generator.done",
        shot_count=len(template.shots),
        total_duration=template.total_duration,
    )
    return template
