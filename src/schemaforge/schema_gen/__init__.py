"""
Schema derivation: turns declared types and their annotations into OpenAPI
schema trees that match the wire format.
"""
from .derive_service import DerivationResult, SchemaDeriveService
from .registry import SchemaRegistry

__all__ = [
    "DerivationResult",
    "SchemaDeriveService",
    "SchemaRegistry",
]
