from __future__ import annotations


class DocStoreError(Exception):
    """Base class for all engine errors."""


class InvalidQueryError(DocStoreError):
    """Query expression is malformed."""


class InvalidModifierError(DocStoreError):
    """Modifier set is malformed or cannot be applied to a document."""


class UnknownOperatorError(InvalidQueryError, InvalidModifierError):
    """
    An operator key ($...) is not recognized. Raised for queries and
    modifier sets alike; `key` holds the offending operator.
    """
    def __init__(self, key: str, where: str = "query") -> None:
        super().__init__(f"unknown {where} operator: {key}")
        self.key = key
        self.where = where


class InvalidOptionsError(DocStoreError):
    """Query options (sort/project/skip/take/join) are malformed."""


class DuplicateIdError(DocStoreError):
    """Inserted document carries an identifier that is already in use."""


class StorageError(DocStoreError):
    """Backing file could not be read or written."""


class IOCorruptionError(StorageError):
    """Backing file exists but does not hold a JSON object."""


class InvalidDocumentError(DocStoreError):
    """Inserted value is not a mapping."""
