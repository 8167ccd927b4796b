"""
Naming helpers for actions.

Derives the canonical action name and default REST path from a member
identifier: a separator is inserted before every upper-case letter, the
result is lower-cased and a single leading separator is stripped.

    >>> derive_name("createMultiple")
    ('create_multiple', '/create_multiple')
"""

from __future__ import annotations

import re

_UPPER_RE = re.compile(r"[A-Z]")


def to_snake_case(identifier: str) -> str:
    """Convert ``camelCase`` / ``PascalCase`` to ``snake_case``."""
    snake = _UPPER_RE.sub(lambda m: f"_{m.group(0).lower()}", identifier)
    if snake.startswith("_"):
        snake = snake[1:]
    return snake


def derive_name(identifier: str) -> tuple[str, str]:
    """Return ``(name, path)`` for a member identifier."""
    name = to_snake_case(identifier)
    return name, f"/{name}"


def derive_static_name(name: str) -> str:
    """Name under which a lifted instance action is registered on its class."""
    return f"{name}_static"
