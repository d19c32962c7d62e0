from collections.abc import Iterable
from pathlib import PurePath


def is_denied(rel_path: str | PurePath, terms: Iterable[str]) -> bool:
    """Decides whether a path relative to the source root is excluded.

    Matching is a plain substring test on the lowercased path string, so a
    term may hit any fragment of any segment: ``cache`` excludes
    ``memcached-config/settings`` as well as ``app/Cache/index``.

    Args:
        rel_path (str | PurePath): The path relative to the source root.
        terms (Iterable[str]): Lowercase denylist terms.

    Returns:
        bool: True if the path must be skipped.
    """
    lowered = str(rel_path).lower()
    return any(term in lowered for term in terms)
