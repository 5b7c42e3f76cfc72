from dataclasses import dataclass
from typing import Any, Optional

from util.enums import LookupStatus


@dataclass(frozen=True)
class ParsedKey:
    """
    Decoded form of a fully-qualified storage key.
    Shared keys carry namespace == "shared".
    """

    namespace: str
    table: str
    local_key: str
    is_shared: bool


@dataclass(frozen=True)
class Lookup:
    status: LookupStatus
    value: Optional[Any] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @classmethod
    def absent(cls) -> "Lookup":
        return cls(LookupStatus.ABSENT)

    @classmethod
    def unreachable(cls) -> "Lookup":
        return cls(LookupStatus.UNREACHABLE)
