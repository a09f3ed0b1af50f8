"""Escaping for Telegram MarkdownV2 text."""

from __future__ import annotations

import re

_SPECIAL = "_*[]()~`>#+-=|{}.!"
_ESCAPE_TABLE = str.maketrans({ch: "\\" + ch for ch in _SPECIAL})
_INLINE_CODE = re.compile(r"\\`([^`]*?)\\`")
_BOLD = re.compile(r"\\\*([^*]+?)\\\*")
_ITALIC = re.compile(r"\\_([^_]+?)\\_")


def escape_markdown(text: str) -> str:
    """Escape MarkdownV2 specials, keeping code fences, inline code, bold and italic."""
    escaped = text.translate(_ESCAPE_TABLE)
    escaped = escaped.replace("\\`\\`\\`", "```")
    escaped = _INLINE_CODE.sub(r"`\1`", escaped)
    escaped = _BOLD.sub(r"*\1*", escaped)
    escaped = _ITALIC.sub(r"_\1_", escaped)
    return escaped