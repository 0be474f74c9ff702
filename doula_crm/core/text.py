"""``{{ name }}`` placeholder substitution for contracts and workflow emails."""

import re
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_placeholders(content: str, values: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders. Unknown placeholders are left as-is."""

    def substitute(match: re.Match) -> str:
        key = match.group(1)
        if key in values and values[key] is not None:
            return str(values[key])
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, content)
