"""Sense Layer - Tree building, element identity and geometry."""

from pagesense.layers.sense.dom_tree import CoordinateSet, DomArena, DomNode, Point, ViewportInfo
from pagesense.layers.sense.identity import ElementChanges, ElementIdentityProcessor, IdentityHash
from pagesense.layers.sense.tree_builder import DomTreeBuilder, TreeBuildResult
from pagesense.layers.sense.geometry import EnhancementResult, GeometryEnhancer

__all__ = [
    "CoordinateSet",
    "DomArena",
    "DomNode",
    "Point",
    "ViewportInfo",
    "ElementChanges",
    "ElementIdentityProcessor",
    "IdentityHash",
    "DomTreeBuilder",
    "TreeBuildResult",
    "EnhancementResult",
    "GeometryEnhancer",
]
