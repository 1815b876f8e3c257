"""
Narrowing of GraphQL union and interface fields by their __typename tag.

A polymorphic field is matched against the variants a normalizer recognizes
before any member is read. Everything else, including a missing tag or a
non-object value, becomes the IGNORED variant.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

IGNORED = "__ignored__"


@dataclass(frozen=True)
class Variant:
    typename: str
    value: Optional[Dict[str, Any]] = None

    @property
    def ignored(self) -> bool:
        return self.typename == IGNORED


def narrow(obj: Any, recognized: Iterable[str]) -> Variant:
    """Match obj against the recognized typenames"""
    if isinstance(obj, dict):
        tag = obj.get("__typename")
        if isinstance(tag, str) and tag in set(recognized):
            return Variant(tag, obj)
    return Variant(IGNORED)
