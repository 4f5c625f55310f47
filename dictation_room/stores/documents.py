# dictation_room/stores/documents.py
"""Helpers for dotted-path patches on plain room documents."""
import copy
from typing import Any, Dict, Mapping, Optional


class _DeleteField:
    def __repr__(self):
        return "DELETE_FIELD"


# Patch value that removes the key instead of setting it
DELETE_FIELD = _DeleteField()


def split_path(path: str) -> list[str]:
    parts = path.split(".")
    if not all(parts):
        raise ValueError(f"Invalid document path: '{path}'")
    return parts


def read_path(document: Mapping[str, Any], path: str, default: Any = None) -> Any:
    node: Any = document
    for key in split_path(path):
        if not isinstance(node, Mapping) or key not in node:
            return default
        node = node[key]
    return node


def matches(document: Mapping[str, Any], expect: Optional[Mapping[str, Any]]) -> bool:
    """True when every expected path holds the given value. A missing path reads as None."""
    if not expect:
        return True
    return all(read_path(document, path) == value for path, value in expect.items())


def apply_patch(document: Dict[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Applies `patch` to `document` in place and returns it.
    Paths are applied in order; intermediate mappings are created as needed.
    """
    for path, value in patch.items():
        *parents, leaf = split_path(path)
        node = document
        for key in parents:
            child = node.get(key)
            if child is None:
                if value is DELETE_FIELD:
                    break # Nothing to delete below a missing parent
                child = node[key] = {}
            elif not isinstance(child, dict):
                raise ValueError(f"Cannot descend into non-mapping at '{key}' for path '{path}'")
            node = child
        else:
            if value is DELETE_FIELD:
                node.pop(leaf, None)
            else:
                node[leaf] = copy.deepcopy(value)
    return document
