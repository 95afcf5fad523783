"""Prefixing of capability identifiers.

Names and URIs are prefixed the same way, ``prefix + separator + identifier``,
so URI schemes and template placeholders pass through untouched. Only the
separator differs per kind.
"""

from typing import Optional

from shared.errors import SeparatorAmbiguityError


def apply_prefix(identifier: str, prefix: Optional[str], separator: str) -> str:
    """Return ``identifier`` as seen through a mount or import under ``prefix``."""
    if not prefix:
        return identifier
    return f"{prefix}{separator}{identifier}"


def strip_prefix(prefixed: str, prefix: Optional[str], separator: str) -> Optional[str]:
    """
    Recover the child identifier from a parent-visible one.

    Returns None when ``prefixed`` does not start with ``prefix + separator``
    so the caller can try its next link. An empty prefix always matches.
    """
    if not prefix:
        return prefixed

    head = f"{prefix}{separator}"
    if not prefixed.startswith(head):
        return None
    return prefixed[len(head):]


def validate_separator(prefix: Optional[str], separator: str) -> None:
    """
    Reject separators that would make ``prefix + separator + body`` ambiguous.

    Raises:
        SeparatorAmbiguityError: If the separator is empty or shares a
            character with the prefix
    """
    if not separator:
        raise SeparatorAmbiguityError("Separator must not be empty")

    if not prefix:
        return

    shared = sorted(set(separator) & set(prefix))
    if shared:
        raise SeparatorAmbiguityError(
            f"Separator {separator!r} is ambiguous with prefix {prefix!r}: "
            f"both contain {''.join(shared)!r}"
        )
