"""
Rolling History Store - Bounded memory of recent captures.

Keeps the last N capture snapshots together with a flattened record of
every clickable element they contained. From those records it answers
"what appeared", "what disappeared" and renders a short text summary that
an agent can read between steps.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union, TYPE_CHECKING
import logging

from pagesense.layers.sense.dom_tree import CoordinateSet, DomNode, ViewportInfo
from pagesense.layers.sense.identity import ElementIdentityProcessor, IdentityHash

if TYPE_CHECKING:
    from pagesense.core.coordinator import CaptureSnapshot

logger = logging.getLogger(__name__)

# Attributes that help a reader recognise an element in the summary
IDENTIFYING_ATTRIBUTES = ("id", "class", "type", "name", "placeholder", "aria-label")

# Records scanned per lookback step in element_exists_in_recent_history
RECORDS_PER_STEP = 20


@dataclass(frozen=True)
class HistoryRecord:
    """A clickable element flattened out of its tree, safe to keep around."""
    tag_name: str
    xpath: str
    highlight_index: Optional[int]
    ancestor_tag_path: Tuple[str, ...]
    attributes: Dict[str, str] = field(default_factory=dict)
    has_shadow_root: bool = False
    page_coordinates: Optional[CoordinateSet] = None
    viewport_coordinates: Optional[CoordinateSet] = None
    viewport_info: Optional[ViewportInfo] = None
    identity_hash: Optional[IdentityHash] = None

    @classmethod
    def from_node(cls, node: DomNode) -> "HistoryRecord":
        path: List[str] = []
        current: Optional[DomNode] = node
        while current is not None:
            path.append(current.tag)
            current = current.parent
        path.reverse()
        return cls(
            tag_name=node.tag,
            xpath=node.xpath,
            highlight_index=node.highlight_index,
            ancestor_tag_path=tuple(path),
            attributes=dict(node.attributes),
            has_shadow_root=node.has_shadow_root,
            page_coordinates=node.page_coordinates,
            viewport_coordinates=node.viewport_coordinates,
            viewport_info=node.viewport_info,
            identity_hash=node.identity_hash or ElementIdentityProcessor.identity_hash(node),
        )

    @property
    def composite_hash(self) -> str:
        return self.identity_hash.composite if self.identity_hash else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag_name": self.tag_name,
            "xpath": self.xpath,
            "highlight_index": self.highlight_index,
            "ancestor_tag_path": list(self.ancestor_tag_path),
            "attributes": dict(self.attributes),
            "has_shadow_root": self.has_shadow_root,
            "page_coordinates": self.page_coordinates.to_dict() if self.page_coordinates else None,
            "viewport_coordinates": (
                self.viewport_coordinates.to_dict() if self.viewport_coordinates else None
            ),
            "viewport_info": self.viewport_info.to_dict() if self.viewport_info else None,
            "identity_hash": self.identity_hash.to_dict() if self.identity_hash else None,
        }


@dataclass(frozen=True)
class HistorySize:
    elements: int
    states: int


class RollingHistoryStore:
    """
    Rolling window of capture snapshots and their clickable elements.

    When more than ``capacity`` snapshots are held, the oldest snapshot is
    dropped together with exactly the records it contributed.

    Example:
        >>> store = RollingHistoryStore(capacity=10)
        >>> current = RollingHistoryStore.flatten(snapshot)
        >>> print(store.format(current, current_url=snapshot.url))
        >>> store.append(snapshot)
    """

    def __init__(self, capacity: int = 10, recent_window: int = 50):
        """
        Args:
            capacity: Maximum number of snapshots kept
            recent_window: Number of newest records compared against
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if recent_window < 1:
            raise ValueError(f"recent_window must be positive, got {recent_window}")
        self.capacity = capacity
        self.recent_window = recent_window
        self._records: List[HistoryRecord] = []
        self._snapshots: List["CaptureSnapshot"] = []
        self._record_counts: List[int] = []

    # ---- storage ----

    def append(self, snapshot: "CaptureSnapshot") -> List[HistoryRecord]:
        """
        Store ``snapshot`` and its flattened clickable elements.

        Returns:
            The records added for this snapshot
        """
        records = self.flatten(snapshot)
        self._records.extend(records)
        self._snapshots.append(snapshot)
        self._record_counts.append(len(records))

        while len(self._snapshots) > self.capacity:
            self._snapshots.pop(0)
            evicted = self._record_counts.pop(0)
            del self._records[:evicted]
            logger.debug(f"[HistoryStore] Evicted oldest capture with {evicted} records")

        logger.debug(
            f"[HistoryStore] Stored capture of {snapshot.url} with {len(records)} records "
            f"({len(self._snapshots)}/{self.capacity} states)"
        )
        return records

    @staticmethod
    def flatten(snapshot: "CaptureSnapshot") -> List[HistoryRecord]:
        return RollingHistoryStore.records_from_tree(snapshot.dom_tree)

    @staticmethod
    def records_from_tree(tree: DomNode) -> List[HistoryRecord]:
        """One record per clickable element of ``tree``, in document order."""
        return [
            HistoryRecord.from_node(node)
            for node in ElementIdentityProcessor.clickable_elements(tree)
        ]

    def clear(self) -> None:
        self._records.clear()
        self._snapshots.clear()
        self._record_counts.clear()

    def size(self) -> HistorySize:
        return HistorySize(elements=len(self._records), states=len(self._snapshots))

    @property
    def records(self) -> List[HistoryRecord]:
        return list(self._records)

    @property
    def snapshots(self) -> List["CaptureSnapshot"]:
        return list(self._snapshots)

    @property
    def latest_snapshot(self) -> Optional["CaptureSnapshot"]:
        return self._snapshots[-1] if self._snapshots else None

    # ---- comparisons ----

    def recently_appeared(self, current: Sequence[HistoryRecord]) -> List[HistoryRecord]:
        """Elements of ``current`` not seen in the recent window."""
        return self._appeared(current, self._records)

    def recently_disappeared(self, current: Sequence[HistoryRecord]) -> List[HistoryRecord]:
        """Elements of the recent window missing from ``current``."""
        return self._disappeared(current, self._records)

    def _appeared(
        self, current: Sequence[HistoryRecord], history: Sequence[HistoryRecord]
    ) -> List[HistoryRecord]:
        if not history:
            return list(current)
        seen = {record.composite_hash for record in self._window(history)}
        return [record for record in current if record.composite_hash not in seen]

    def _disappeared(
        self, current: Sequence[HistoryRecord], history: Sequence[HistoryRecord]
    ) -> List[HistoryRecord]:
        if not history:
            return []
        present = {record.composite_hash for record in current}
        return [record for record in self._window(history) if record.composite_hash not in present]

    def _window(self, history: Sequence[HistoryRecord]) -> Sequence[HistoryRecord]:
        return history[-self.recent_window:]

    # ---- lookups ----

    def element_by_highlight_index(self, index: int) -> Optional[HistoryRecord]:
        """Newest stored record carrying ``index``."""
        for record in reversed(self._records):
            if record.highlight_index == index:
                return record
        return None

    def element_exists_in_recent_history(
        self,
        identity_hash: Union[str, IdentityHash],
        lookback_steps: int = 3,
    ) -> bool:
        """
        Whether an element was stored within the last few steps.

        Args:
            identity_hash: Composite digest or IdentityHash of the element
            lookback_steps: Steps to look back, each worth RECORDS_PER_STEP records
        """
        target = identity_hash.composite if isinstance(identity_hash, IdentityHash) else identity_hash
        window = max(lookback_steps, 0) * RECORDS_PER_STEP
        if window == 0:
            return False
        return any(record.composite_hash == target for record in self._records[-window:])

    # ---- rendering ----

    def format(
        self,
        current: Sequence[HistoryRecord],
        max_elements: int = 20,
        include_recent: bool = True,
        current_url: Optional[str] = None,
    ) -> str:
        """
        Render the changes between ``current`` and the stored history.

        Args:
            current: Records of the capture being described
            max_elements: Cap on entries per section
            include_recent: Include the appeared/disappeared sections
            current_url: URL of the capture being described; when omitted the
                two newest stored snapshots are compared for navigation

        Returns:
            Sections separated by a blank line, or "" if nothing changed
        """
        if current_url is not None:
            latest = self.latest_snapshot
            previous_url = latest.url if latest else None
        elif len(self._snapshots) >= 2:
            previous_url, current_url = self._snapshots[-2].url, self._snapshots[-1].url
        else:
            previous_url = None
        return self._render(current, self._records, max_elements, include_recent, previous_url, current_url)

    def format_latest(self, max_elements: int = 20, include_recent: bool = True) -> str:
        """Render the newest stored snapshot against the history before it."""
        latest = self.latest_snapshot
        if latest is None:
            return ""
        count = self._record_counts[-1]
        cut = len(self._records) - count
        history = self._records[:cut]
        current = self._records[cut:]
        previous_url = self._snapshots[-2].url if len(self._snapshots) >= 2 else None
        return self._render(current, history, max_elements, include_recent, previous_url, latest.url)

    def _render(
        self,
        current: Sequence[HistoryRecord],
        history: Sequence[HistoryRecord],
        max_elements: int,
        include_recent: bool,
        previous_url: Optional[str],
        current_url: Optional[str],
    ) -> str:
        sections: List[str] = []
        limit = max(max_elements, 0)

        if include_recent:
            appeared = self._appeared(current, history)[:limit]
            if appeared:
                lines = ["=== Recently Appeared Elements ==="]
                lines.extend(f"[+] {self.describe(record)}" for record in appeared)
                sections.append("\n".join(lines))

            disappeared = self._disappeared(current, history)[:limit]
            if disappeared:
                lines = ["=== Recently Disappeared Elements ==="]
                lines.extend(f"[-] {self.describe(record)}" for record in disappeared)
                sections.append("\n".join(lines))

        if previous_url is not None and current_url is not None and previous_url != current_url:
            sections.append(
                f"=== Page Navigation ===\nPrevious: {previous_url}\nCurrent: {current_url}"
            )

        return "\n\n".join(sections)

    @staticmethod
    def describe(record: HistoryRecord) -> str:
        """One-line description: ``[index] tag (x, y) {id="..."}``."""
        parts = []
        if record.highlight_index is not None:
            parts.append(f"[{record.highlight_index}]")
        parts.append(record.tag_name)
        if record.viewport_coordinates is not None:
            center = record.viewport_coordinates.center
            parts.append(f"({round(center.x)}, {round(center.y)})")
        attrs = " ".join(
            f'{key}="{record.attributes[key]}"'
            for key in IDENTIFYING_ATTRIBUTES
            if record.attributes.get(key)
        )
        if attrs:
            parts.append(f"{{{attrs}}}")
        return " ".join(parts)
