"""Split inline reasoning out of completion text.

Some models put their reasoning in the content instead of the dedicated
``reasoning`` field.  Recognised markers, first match wins:
``<think>...</think>``, ``<reasoning>...</reasoning>``, a fenced
```` ```reasoning ```` block, and a trailing ``Reasoning:`` section.
"""

from __future__ import annotations

import re

_THINK_RE = re.compile(r"<think>(.*?)</think>", re.DOTALL)
_REASONING_TAG_RE = re.compile(r"<reasoning>(.*?)</reasoning>", re.DOTALL)
_REASONING_FENCE_RE = re.compile(r"```reasoning(.*?)```", re.DOTALL)
_REASONING_LABEL = "Reasoning:"


def _extract(pattern: re.Pattern[str], text: str) -> tuple[str, str]:
    parts = pattern.findall(text)
    reasoning = "\n".join(p.strip() for p in parts).strip()
    cleaned = pattern.sub("", text).strip()
    return reasoning, cleaned


def split_reasoning(text: str) -> tuple[str, str]:
    """Return ``(content, reasoning)``.

    Text without a recognised marker comes back unchanged with empty
    reasoning.
    """
    for pattern in (_THINK_RE, _REASONING_TAG_RE, _REASONING_FENCE_RE):
        if pattern.search(text):
            reasoning, cleaned = _extract(pattern, text)
            return cleaned, reasoning
    if _REASONING_LABEL in text:
        content, _, reasoning = text.partition(_REASONING_LABEL)
        return content.strip(), reasoning.strip()
    return text, ""
