from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ReservedKeys:
    """
    Names of the three properties every stored document carries.
    Passed to a Collection once, at construction; documents already on disk
    keep whatever names they were written with.
    """
    id_key: str = "_id"
    created_at_key: str = "_created_at"
    updated_at_key: str = "_updated_at"

    def __post_init__(self) -> None:
        names = self.as_tuple()
        for n in names:
            if not isinstance(n, str) or not n:
                raise ValueError(f"reserved key names must be non-empty strings, got {n!r}")
        if len(set(names)) != len(names):
            raise ValueError(f"reserved key names must be distinct, got {names!r}")

    def as_tuple(self) -> Tuple[str, str, str]:
        return (self.id_key, self.created_at_key, self.updated_at_key)


DEFAULT_KEYS = ReservedKeys()
