"""
Versioned prompt templates for evidence extraction and verdict synthesis.

Each task has a user template ``<task>_v<N>.md`` and a system template
``<task>_system_v<N>.md`` in this directory. Placeholders are ``{{NAME}}``;
str.format is not used because the templates embed JSON examples.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent

_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")


def available_prompts() -> list[str]:
    return sorted(path.stem for path in TEMPLATE_DIR.glob("*.md"))


@lru_cache(maxsize=None)
def load_prompt(name: str) -> str:
    """Raw template text. Unknown names raise FileNotFoundError listing the known ones."""
    path = TEMPLATE_DIR / f"{name}.md"
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        raise FileNotFoundError(
            f"Unknown prompt template {name!r}; available: {available_prompts()}"
        ) from None


def render_prompt(name: str, **values: object) -> str:
    """Fill every placeholder of template ``name`` in a single pass.

    Substituted text is never rescanned, so a claim or abstract containing
    ``{{...}}`` is inserted literally. Missing values raise ValueError;
    values the template does not use are logged and ignored.
    """
    template = load_prompt(name)
    expected = set(_PLACEHOLDER_RE.findall(template))

    unused = sorted(set(values) - expected)
    if unused:
        logger.warning("Prompt %s does not use %s", name, ", ".join(unused))
    missing = sorted(expected - set(values))
    if missing:
        raise ValueError(f"Prompt {name!r} is missing values for {missing}")

    return _PLACEHOLDER_RE.sub(lambda match: str(values[match.group(1)]), template)
