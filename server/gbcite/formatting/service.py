from __future__ import annotations

import logging

from server.gbcite.errors import InputValidationError
from server.gbcite.formatting.normalize import NormalizedResult, normalize
from server.gbcite.llm.chat import ChatClient
from server.gbcite.prompts import load_prompt_pair

logger = logging.getLogger(__name__)


def validate_reference_text(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError("Reference text must be a non-empty string.")
    return value


def format_references(client: ChatClient, text: str) -> NormalizedResult:
    text = validate_reference_text(text)
    line_count = sum(1 for line in text.splitlines() if line.strip())
    logger.info("Formatting %d reference line(s) with model %s", line_count, client.model)

    content = client.complete(system=_FORMAT_PROMPTS.system, user=_FORMAT_PROMPTS.render_user(text=text))
    result = normalize(content)
    logger.info("Formatting finished: status=%s changes=%d", result.status.value, len(result.changes))
    return result


_FORMAT_PROMPTS = load_prompt_pair("format", variables=("text",))
