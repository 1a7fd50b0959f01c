"""Plain-text helpers shared by the record mapper and the RAG engine."""

import re
from typing import Any

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(value: str | None) -> str:
    """Collapse every whitespace run to a single space and strip the ends."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def truncate(value: str, max_length: int, suffix: str = "") -> str:
    """Cut a string down to max_length characters, appending suffix when cut.

    Args:
        value (str): The text to shorten.
        max_length (int): Maximum number of characters kept from value.
        suffix (str): Marker appended after a cut (e.g. "...").

    Returns:
        str: The original value if short enough, otherwise the cut value plus suffix.
    """
    if len(value) <= max_length:
        return value
    return f"{value[:max_length]}{suffix}"


def pick_localized(language: str, vietnamese: str | None, english: str | None) -> str:
    """Pick the text for a language, falling back to the other language when blank."""
    vietnamese = normalize_whitespace(vietnamese)
    english = normalize_whitespace(english)
    if language == "vi":
        return vietnamese or english
    return english or vietnamese


def extract_plain_text(document: Any) -> str:
    """Flatten a rich-text document tree into whitespace-normalised plain text.

    The document is a nested structure of dict nodes. Every node may carry a
    "text" string and/or a "children" list; a Lexical editor state wraps the
    tree in a {"root": {...}} node. Text values are collected depth-first.

    Args:
        document (Any): The rich-text value as stored by the CMS (may be None).

    Returns:
        str: The concatenated text, or "" if the document holds none.
    """
    parts: list[str] = []
    stack: list[Any] = [document]

    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue

        text = node.get("text")
        if isinstance(text, str):
            normalized = normalize_whitespace(text)
            if normalized:
                parts.append(normalized)

        children = node.get("children")
        if isinstance(children, list):
            # reversed so that pop() visits children in document order
            stack.extend(reversed(children))

        root = node.get("root")
        if isinstance(root, dict):
            stack.append(root)

    return normalize_whitespace(" ".join(parts))
