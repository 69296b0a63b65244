"""
Merging of policy filters into user queries, plus the summary attached to
results when permissions changed them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


def merge_filters(
    user: Optional[Mapping[str, Any]],
    permission: Optional[Mapping[str, Any]],
) -> Tuple[Optional[Mapping[str, Any]], bool]:
    """
    AND the policy filter into the user filter.

    Returns the merged tree and whether the policy changed anything.
    """

    if not permission:
        return user, False
    if not user:
        return permission, True
    return {"_and": [user, permission]}, True


@dataclass
class PermissionInfo:
    """
    How permissions affected a tool result.
    """

    applied: bool = False
    filter_applied: bool = False
    message: str = ""
    restrictions: List[str] = field(default_factory=list)

    @classmethod
    def denied(cls, message: str) -> "PermissionInfo":
        return cls(applied=True, message=message)

    @classmethod
    def filtered(cls, message: str = "results filtered by permissions") -> "PermissionInfo":
        return cls(applied=True, filter_applied=True, message=message)

    @classmethod
    def restricted(cls, restrictions: List[str]) -> "PermissionInfo":
        return cls(
            applied=True,
            restrictions=list(restrictions),
            message=f"{len(restrictions)} items restricted by permissions",
        )

    def to_dict(self) -> Dict[str, Any]:
        # Mirror the JSON shape: empty optional fields are left out.
        data = asdict(self)
        return {key: value for key, value in data.items() if key == "applied" or value}
