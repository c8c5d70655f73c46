"""Prefix-tagged identifiers for users, posts, comments, groups and notifications."""

from __future__ import annotations

import re

import ulid

USER = "u"
POST = "p"
COMMENT = "c"
GROUP = "g"
NOTIFICATION = "n"

_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def generate_id(prefix: str) -> str:
	return f"{prefix}{ulid.new().str.lower()}"


def is_valid_id(value: object) -> bool:
	return isinstance(value, str) and bool(_ID_PATTERN.match(value))
