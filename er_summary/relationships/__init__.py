"""Public APIs for relationship discovery."""

from .discovery import (
    RelationshipDiscoveryResult,
    RelationshipSummary,
    discover_relationships,
    discover_relationships_from_schema,
    infer_relationships,
)
from .graph import GraphConstructionError
from .paths import NegativeCycleError

__all__ = [
    "GraphConstructionError",
    "NegativeCycleError",
    "RelationshipDiscoveryResult",
    "RelationshipSummary",
    "discover_relationships",
    "discover_relationships_from_schema",
    "infer_relationships",
]
