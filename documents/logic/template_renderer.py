"""
Letter templates: ``#name#`` placeholders replaced by plain values.

Tokens are letters, digits, ``_`` and ``-``. A token without a value
renders as ``[name is empty]`` so the gap stays visible to reviewers.
"""
from __future__ import annotations

import re
from typing import List, Mapping, Optional

PLACEHOLDER_RE = re.compile(r"#([A-Za-z0-9_-]+)#")


def placeholders(template: str) -> List[str]:
    """Distinct placeholder names in order of first appearance."""
    return list(dict.fromkeys(PLACEHOLDER_RE.findall(template or "")))


def render_template(template: str, values: Optional[Mapping[str, object]] = None) -> str:
    values = values or {}

    def _sub(m: "re.Match[str]") -> str:
        name = m.group(1)
        value = values.get(name)
        if value is None or str(value) == "":
            return f"[{name} is empty]"
        return str(value)

    return PLACEHOLDER_RE.sub(_sub, template or "")
