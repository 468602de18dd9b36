"""Recursive key enumeration for Vault logical paths.

Vault lists one level at a time: keys ending in ``/`` are collections to
descend into, every other key is a leaf holding a value.
"""

import logging
from typing import Callable, Optional

from vault_migrator.vault.exceptions import VaultError

logger = logging.getLogger(__name__)

KeyLister = Callable[[str], list[str]]


def list_leaf_paths(
    list_keys: KeyLister,
    base_path: str,
    prefix: str = "",
    _seen: Optional[set[str]] = None,
) -> list[str]:
    """Collect every leaf path below ``base_path + prefix``.

    A listing that fails or comes back empty contributes no paths; the rest
    of the tree is still walked.

    Args:
        list_keys: Callable returning the child keys of a full logical path
        base_path: Path the listing is rooted at (e.g. ``"secret/metadata/"``)
        prefix: Collection below ``base_path`` to start from

    Returns:
        Leaf paths relative to ``base_path + prefix``, in no particular order
    """
    seen = _seen if _seen is not None else set()
    if prefix in seen:
        return []
    seen.add(prefix)

    list_path = base_path + prefix
    try:
        keys = list_keys(list_path)
    except VaultError as e:
        logger.warning(f"Failed to list {list_path}: {e}")
        return []

    paths: list[str] = []
    for key in keys:
        if key.endswith("/"):
            children = list_leaf_paths(list_keys, base_path, prefix + key, seen)
            paths.extend(key + child for child in children)
        else:
            paths.append(key)
    return paths


def list_children(list_keys: KeyLister, path: str) -> list[str]:
    """List one level of ``path`` without descending.

    Failures are logged and yield an empty list.
    """
    try:
        return [key for key in list_keys(path) if not key.endswith("/")]
    except VaultError as e:
        logger.warning(f"Failed to list {path}: {e}")
        return []
