"""JSON-mode completions for evidence extraction and verdict synthesis.

Models occasionally wrap JSON in markdown fences or emit prose despite JSON
mode. Fences are stripped; prose earns exactly one corrective re-prompt.
"""

from __future__ import annotations

import json
import logging
import re

from dossier.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

JSON_MODE = {"type": "json_object"}

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")

_REPROMPT = (
    "Your previous response was not valid JSON. Reply with a single JSON object "
    "containing exactly the fields requested below and nothing else.\n\n{prompt}"
)


def parse_json_safe(raw: str | None) -> dict | None:
    """The JSON object in ``raw``, or None for empty, invalid or non-object output."""
    if not raw:
        return None
    try:
        parsed = json.loads(_FENCE_RE.sub("", raw.strip()))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def call_llm_json(
    llm: LLMProvider,
    prompt: str,
    *,
    system_prompt: str | None = None,
    temperature: float = 0.2,
) -> tuple[dict | None, str]:
    """Return ``(parsed, raw)``; ``parsed`` is None when both attempts are unparsable.

    Provider exceptions propagate unchanged.
    """
    raw = ""
    for attempt, text in enumerate((prompt, _REPROMPT.format(prompt=prompt)), start=1):
        raw = llm.complete(
            text,
            system_prompt=system_prompt,
            response_format=JSON_MODE,
            temperature=temperature,
        )
        parsed = parse_json_safe(raw)
        if parsed is not None:
            return parsed, raw
        logger.warning("Model returned non-JSON output (attempt %d/2): %r", attempt, raw[:120])
    return None, raw
