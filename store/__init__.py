#Marks store as a package.
#Re-exports the document store contract, the in-memory implementation and its errors.
#No business logic.

from .document_store import (
    Document,
    DocumentNotFound,
    DocumentStore,
    InMemoryDocumentStore,
    PreconditionFailed,
    StoreError,
    get_path,
    sanitize_document,
)

__all__ = [
    "Document",
    "DocumentNotFound",
    "DocumentStore",
    "InMemoryDocumentStore",
    "PreconditionFailed",
    "StoreError",
    "get_path",
    "sanitize_document",
]
