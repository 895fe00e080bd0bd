from __future__ import annotations

from typing import Any, Dict, MutableMapping

PropertyMap = Dict[str, Any]


class DuplicatePropertyError(KeyError):
    """A key was about to be written twice into one property map."""


def add_property(props: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a new key; existing keys are never overwritten."""
    if key in props:
        raise DuplicatePropertyError(key)
    props[key] = value
