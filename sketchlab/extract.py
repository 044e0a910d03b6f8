"""
Code extraction from free-form model output.
"""

import re

# A known JavaScript tag is stripped when followed by any whitespace. Other
# tags need a newline, otherwise the first word of an inline block would be
# mistaken for one.
_FENCE_PATTERN = re.compile(
    r"```(?:(?:javascript|js)[ \t\r\n]+|[\w.+#-]*[ \t]*\r?\n)?(.*?)```",
    re.DOTALL | re.IGNORECASE,
)


def extract_code(text: str) -> str:
    """
    Pull a program body out of generated text.

    Args:
        text: Raw text returned by the generation service

    Returns:
        The trimmed interior of the first fenced code block, or the full
        text unchanged when there is no fenced block
    """
    if not text:
        return ""

    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text


def fence(code: str, language: str = "javascript") -> str:
    """Wrap code in a markdown fence."""
    return f"```{language}\n{code}\n```"
