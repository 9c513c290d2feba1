"""Validation of caller-supplied project, branch and repository names."""

import re

from .errors import ValidationError

FOLDER_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_\-\.]+$")
RESERVED_NAMES = frozenset({"trunk", "branches", "tags"})


def validate_folder_name(name: str, allow_reserved: bool = False) -> str:
    """
    Check that ``name`` can be used as a single repository path segment.

    Only letters, digits, underscores, hyphens and periods are allowed.
    ``trunk``, ``branches`` and ``tags`` are rejected unless
    ``allow_reserved`` is set.

    Returns:
        The name, stripped of surrounding whitespace

    Raises:
        ValidationError: the name is empty, reserved or has invalid characters
    """
    stripped = (name or "").strip()
    if not stripped:
        raise ValidationError("Name cannot be empty")

    if not allow_reserved and stripped.lower() in RESERVED_NAMES:
        raise ValidationError(f"Invalid name: {stripped} is a reserved keyword.", {"name": stripped})

    if stripped in (".", "..") or not FOLDER_NAME_PATTERN.match(stripped):
        raise ValidationError(
            f"Invalid folder name: {stripped}. Only alphanumeric characters, underscores (_), "
            "hyphens (-), and periods (.) are allowed.",
            {"name": stripped},
        )

    return stripped
