"""Storage partition key derivation."""

from __future__ import annotations

import re
from typing import Optional

DEFAULT_NAMESPACE = "default"

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lower-case *value* and collapse every non ``[a-z0-9]`` run to ``-``."""
    return _NON_SLUG_CHARS.sub("-", value.lower()).strip("-")


def resolve_namespace(
    namespace: Optional[str] = None,
    organisation: Optional[str] = None,
) -> str:
    """Return the namespace chunks of one request are stored under.

    An explicit *namespace* always wins (trimmed, otherwise verbatim).  Failing
    that, the *organisation* is slugified (``"Acme Corp!!"`` → ``"acme-corp"``).
    When neither yields anything, ``"default"`` is returned.
    """
    if namespace and namespace.strip():
        return namespace.strip()
    if organisation and organisation.strip():
        slug = slugify(organisation)
        if slug:
            return slug
    return DEFAULT_NAMESPACE
