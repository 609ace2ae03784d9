"""AI agents for structural segmentation of research papers."""

import logging
from typing import Any

from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, UnexpectedModelBehavior
from pydantic_ai.models import Model

from schemas.paper import StructuredPaper
from services.ai.model_factory import create_resilient_http_client, get_structure_model
from services.pipeline.exceptions import ServiceError


logger = logging.getLogger(__name__)


# Segmentation only: the model must copy text verbatim, never rewrite it
STRUCTURE_EXTRACTION_PROMPT = """
You are a document structuring assistant for academic research papers.
Analyze the provided plain text of a research paper and segment it into
its structural parts.

Return these fields:
1. title: the paper title
2. authors: list of author names (and affiliations if they are inline)
3. abstract: the abstract paragraph(s)
4. keywords: list of index terms / keywords
5. sections: list of {heading, level, content} objects in document order.
   level is 1 for top-level sections and 2 for subsections.
6. references: list of bibliography entries in their original order

RULES:
- Do NOT rewrite, summarize, correct or reword any content. Copy text exactly
  as it appears.
- Do not number the headings yourself; strip existing numbering such as
  "1." or "II." from the heading text only.
- Do not include the abstract, keywords or references inside sections.
- If a part is absent, return an empty string or an empty list for it.
"""

STRUCTURE_USER_PROMPT = "Segment the following research paper text:"


def create_structure_agent(model: Model | str | None = None) -> Agent[None, StructuredPaper]:
    """Create a pydantic-ai agent that segments paper text into structure."""
    if model is None:
        model = get_structure_model(http_client=create_resilient_http_client())
    return Agent(
        model,
        system_prompt=STRUCTURE_EXTRACTION_PROMPT,
        output_type=StructuredPaper,
        retries=2,
    )


async def run_structure_agent(
    text: str, agent: Agent[None, StructuredPaper] | None = None
) -> StructuredPaper | None:
    """Run the structure agent over `text`.

    Returns None when the model's response could not be parsed into a paper.
    Transport or model faults raise `ServiceError`.
    """
    agent = agent or create_structure_agent()
    prompt = f"{STRUCTURE_USER_PROMPT}\n\nPaper Text:\n{text}"
    try:
        result: Any = await agent.run(prompt)
    except UnexpectedModelBehavior as exc:
        logger.warning("Structure agent returned an unusable response: %s", exc)
        return None
    except AgentRunError as exc:
        raise ServiceError(f"Structure agent failed: {exc}") from exc
    except Exception as exc:  # noqa: BLE001 - transport errors vary by provider
        raise ServiceError(f"Structure inference unavailable: {exc}") from exc
    return result.output
