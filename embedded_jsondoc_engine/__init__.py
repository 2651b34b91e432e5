from .collection import Collection
from .config import DEFAULT_KEYS, ReservedKeys
from .errors import (
    DocStoreError,
    DuplicateIdError,
    InvalidDocumentError,
    InvalidModifierError,
    InvalidOptionsError,
    InvalidQueryError,
    IOCorruptionError,
    StorageError,
    UnknownOperatorError,
)
from .join import join
from .modifiers import ModifierOperator, apply_modifiers
from .paths import locate
from .query import QueryOperator, matches
from .shaping import JoinSpec, QueryOptions, shape
from .storage import FileStorage

__all__ = [
    "Collection",
    "DEFAULT_KEYS",
    "ReservedKeys",
    "DocStoreError",
    "DuplicateIdError",
    "InvalidDocumentError",
    "InvalidModifierError",
    "InvalidOptionsError",
    "InvalidQueryError",
    "IOCorruptionError",
    "StorageError",
    "UnknownOperatorError",
    "join",
    "ModifierOperator",
    "apply_modifiers",
    "locate",
    "QueryOperator",
    "matches",
    "JoinSpec",
    "QueryOptions",
    "shape",
    "FileStorage",
]
