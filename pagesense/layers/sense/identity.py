"""
Element Identity - Cross-capture hashing and change detection.

Raw node ids and DOM references die with each capture, so an element is
recognised across captures by a digest of where it sits (tag path), what it
declares (attributes) and how the page addresses it (xpath). Text content and
transient state are not part of the digest.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Set
import hashlib
import logging

from pagesense.layers.sense.dom_tree import DomNode

logger = logging.getLogger(__name__)

# Unit separator; cannot occur in an attribute name and is rare in values
ATTRIBUTE_SEPARATOR = "\x1f"


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IdentityHash:
    """The three component digests of an element's identity."""
    branch_path_hash: str
    attributes_hash: str
    xpath_hash: str

    @property
    def composite(self) -> str:
        """Single digest used for set membership across captures."""
        return _digest(f"{self.branch_path_hash}-{self.attributes_hash}-{self.xpath_hash}")

    def to_dict(self) -> Dict[str, str]:
        return {
            "branch_path_hash": self.branch_path_hash,
            "attributes_hash": self.attributes_hash,
            "xpath_hash": self.xpath_hash,
            "composite": self.composite,
        }


@dataclass(frozen=True)
class ElementChanges:
    """Result of comparing two capture hash sets."""
    added: Set[str]
    removed: Set[str]
    unchanged: Set[str]

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed)


class ElementIdentityProcessor:
    """
    Hashes clickable elements and compares hash sets between captures.

    All methods are pure: the same node content always yields the same
    digests, independent of traversal order or wall-clock time.

    Example:
        >>> previous = ElementIdentityProcessor.clickable_element_hashes(old_tree)
        >>> current = ElementIdentityProcessor.clickable_element_hashes(new_tree)
        >>> ElementIdentityProcessor.changes(previous, current).added
    """

    @staticmethod
    def branch_path(node: DomNode) -> List[str]:
        """Tags from just below the tree root down to ``node`` itself."""
        path: List[str] = []
        current = node
        while current is not None and current.parent is not None:
            path.append(current.tag)
            current = current.parent
        path.reverse()
        return path

    @staticmethod
    def attributes_string(attributes: Dict[str, str]) -> str:
        return ATTRIBUTE_SEPARATOR.join(
            f"{key}={value}" for key, value in sorted(attributes.items())
        )

    @classmethod
    def identity_hash(cls, node: DomNode) -> IdentityHash:
        """Compute the component digests for ``node``."""
        return IdentityHash(
            branch_path_hash=_digest("/".join(cls.branch_path(node))),
            attributes_hash=_digest(cls.attributes_string(node.attributes)),
            xpath_hash=_digest(node.xpath),
        )

    @classmethod
    def hash_element(cls, node: DomNode) -> str:
        """Composite identity digest for ``node``."""
        return cls.identity_hash(node).composite

    @staticmethod
    def clickable_elements(tree: DomNode) -> List[DomNode]:
        """Clickable nodes of ``tree`` in document order."""
        return [node for node in tree.iter_subtree() if node.is_clickable]

    @classmethod
    def clickable_element_hashes(cls, tree: DomNode) -> Set[str]:
        return {cls.hash_element(node) for node in cls.clickable_elements(tree)}

    @staticmethod
    def changes(previous: Iterable[str], current: Iterable[str]) -> ElementChanges:
        """
        Classify hashes as added, removed or unchanged.

        Args:
            previous: Hashes from the earlier capture
            current: Hashes from the later capture
        """
        previous_set = set(previous)
        current_set = set(current)
        result = ElementChanges(
            added=current_set - previous_set,
            removed=previous_set - current_set,
            unchanged=current_set & previous_set,
        )
        logger.debug(
            f"[Identity] Element changes: +{len(result.added)} "
            f"-{len(result.removed)} ={len(result.unchanged)}"
        )
        return result

    @classmethod
    def mark_new_elements(cls, tree: DomNode, previous_hashes: Set[str]) -> DomNode:
        """Set ``is_new`` on every clickable node; other nodes are left alone."""
        for node in cls.clickable_elements(tree):
            node.is_new = cls.hash_element(node) not in previous_hashes
        return tree
