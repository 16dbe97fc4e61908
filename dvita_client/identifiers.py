"""Classification of operator-supplied identifiers.

Two predicates decide how an input string is resolved:

* :func:`is_domain_name` accepts ``*.id.dvita.com`` names, anything starting
  with ``@`` and anything containing both ``@`` and ``.`` (e-mail style names).
* :func:`is_social_handle` accepts anything starting with ``@``.

The predicates overlap: every ``@handle`` is also a domain name. The overlap is
resolved by :data:`RESOLUTION_PRECEDENCE`, which callers walk in order so that
the naming contract is always asked before the social-handle path is taken.
"""

from __future__ import annotations

import enum
import re

DOMAIN_SUFFIX = "id.dvita.com"
_DOMAIN_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]*\.(id\.dvita\.com)$")


class ClassificationMismatch(ValueError):
    """Raised when an identifier matches none of the supported forms."""


class IdentifierKind(str, enum.Enum):
    DOMAIN_NAME = "domain-name"
    SOCIAL_HANDLE = "social-handle"
    RAW_ADDRESS = "raw-address"


# Order in which an identifier is tried; the first form that yields a target wins.
RESOLUTION_PRECEDENCE = (
    IdentifierKind.DOMAIN_NAME,
    IdentifierKind.SOCIAL_HANDLE,
    IdentifierKind.RAW_ADDRESS,
)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def is_domain_name(value: str | None) -> bool:
    if _is_blank(value):
        return False
    return bool(
        _DOMAIN_NAME_PATTERN.match(value)
        or value.startswith("@")
        or ("@" in value and "." in value)
    )


def is_social_handle(value: str | None) -> bool:
    if _is_blank(value):
        return False
    return value.startswith("@")


def require_domain_name(value: str | None) -> str:
    if not is_domain_name(value):
        raise ClassificationMismatch(
            f"Name {value!r} is invalid - it should be either an email-style value "
            f"or an alphanumeric value ending with .{DOMAIN_SUFFIX}"
        )
    return value


def is_yes(answer: str | None) -> bool:
    """Return True only for an explicit ``yes``/``y`` (any case)."""

    if answer is None:
        return False
    return answer.strip().lower() in {"yes", "y"}
