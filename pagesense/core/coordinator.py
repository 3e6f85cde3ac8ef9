"""
Capture Coordinator - One call, one consistent page capture.

Runs extraction, tree building, geometry enhancement, snapshot assembly
and history bookkeeping in order, and hands back everything an agent needs
for the current step.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Mapping, Optional, Set
import json
import logging
import os

from pagesense.core.browser_bridge import BrowserBridge
from pagesense.core.exceptions import CaptureError
from pagesense.layers.sense.dom_tree import DomNode, SelectorMap, ViewportInfo
from pagesense.layers.sense.geometry import GeometryEnhancer
from pagesense.layers.sense.tree_builder import DomTreeBuilder
from pagesense.reporters.history_store import RollingHistoryStore

logger = logging.getLogger(__name__)

BLANK_URLS = ("", "about:blank")


@dataclass
class CaptureConfig:
    """Configuration for the capture coordinator."""
    history_capacity: int = 10
    recent_window: int = 50
    history_max_elements: int = 20
    highlight_elements: bool = False
    focus_highlight_index: int = -1
    viewport_expansion: int = 0
    debug_mode: bool = False

    def __post_init__(self):
        if self.history_capacity < 1:
            raise ValueError(f"history_capacity must be positive, got {self.history_capacity}")
        if self.recent_window < 1:
            raise ValueError(f"recent_window must be positive, got {self.recent_window}")

    @classmethod
    def from_env(cls) -> "CaptureConfig":
        """
        Build a config from ``PAGESENSE_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: if a value is not an integer or a size is not positive
        """
        defaults = cls()
        return cls(
            history_capacity=_env_int("PAGESENSE_HISTORY_CAPACITY", defaults.history_capacity),
            recent_window=_env_int("PAGESENSE_RECENT_WINDOW", defaults.recent_window),
            history_max_elements=_env_int(
                "PAGESENSE_HISTORY_MAX_ELEMENTS", defaults.history_max_elements
            ),
            viewport_expansion=_env_int("PAGESENSE_VIEWPORT_EXPANSION", defaults.viewport_expansion),
            debug_mode=os.getenv("PAGESENSE_DEBUG", "").strip().lower() in ("1", "true", "yes", "on"),
        )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class CaptureSnapshot:
    """Immutable record of one page capture."""
    url: str
    title: str
    dom_tree: DomNode
    selector_map: SelectorMap
    viewport_info: ViewportInfo
    interactive_element_hashes: FrozenSet[str] = frozenset()
    captured_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "url": self.url,
            "title": self.title,
            "captured_at": self.captured_at.isoformat(),
            "viewport_info": self.viewport_info.to_dict(),
            "interactive_element_hashes": sorted(self.interactive_element_hashes),
            "selector_map": {
                str(index): node.to_dict(include_children=False)
                for index, node in sorted(self.selector_map.items())
            },
            "dom_tree": self.dom_tree.to_dict(),
        }


@dataclass
class CaptureResult:
    """What one ``capture()`` call hands back."""
    snapshot: CaptureSnapshot
    selector_map: SelectorMap
    dom_tree: DomNode
    history_text: str = ""

    @property
    def new_elements(self) -> int:
        return sum(1 for node in self.selector_map.values() if node.is_new)


class CaptureCoordinator:
    """
    Produces page captures for one browsing session.

    Each coordinator owns its history store and the hash set of its previous
    capture, so two sessions in one process never see each other's state.

    Example:
        >>> coordinator = CaptureCoordinator(SeleniumBridge(driver))
        >>> result = coordinator.capture()
        >>> print(result.history_text)
        >>> result.selector_map[0].tag
    """

    def __init__(
        self,
        bridge: BrowserBridge,
        history: Optional[RollingHistoryStore] = None,
        config: Optional[CaptureConfig] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            bridge: Browser bridge for extraction and geometry queries
            history: History store to use; a new one is created from config if None
            config: Capture configuration; defaults to CaptureConfig()
        """
        self.bridge = bridge
        self.config = config or CaptureConfig()
        self.history = history if history is not None else RollingHistoryStore(
            capacity=self.config.history_capacity,
            recent_window=self.config.recent_window,
        )
        self.tree_builder = DomTreeBuilder()
        self.enhancer = GeometryEnhancer(bridge)
        self._previous_hashes: Set[str] = set()

    @property
    def previous_hashes(self) -> FrozenSet[str]:
        """Clickable element hashes of the last successful capture."""
        return frozenset(self._previous_hashes)

    def capture(
        self,
        highlight_elements: Optional[bool] = None,
        focus_highlight_index: Optional[int] = None,
        viewport_expansion: Optional[int] = None,
    ) -> CaptureResult:
        """
        Capture the current page.

        Arguments left as None fall back to the coordinator's config.

        Args:
            highlight_elements: Draw index overlays on interactive elements
            focus_highlight_index: Only highlight this index (-1 for all)
            viewport_expansion: Pixels around the viewport still counted as visible

        Returns:
            CaptureResult with snapshot, selector map, tree and history text

        Raises:
            CaptureError: if extraction fails or returns an unusable result
        """
        try:
            url = self.bridge.current_url()
        except Exception as e:
            logger.error(f"[Coordinator] Could not read current URL: {e}")
            raise CaptureError(f"Could not read current URL: {e}", cause=e) from e

        if url in BLANK_URLS:
            logger.warning(f"[Coordinator] Blank page ({url or 'no url'}), returning empty capture")
            return self._empty_capture(url)

        args = {
            "doHighlightElements": (
                self.config.highlight_elements if highlight_elements is None else highlight_elements
            ),
            "focusHighlightIndex": (
                self.config.focus_highlight_index
                if focus_highlight_index is None else focus_highlight_index
            ),
            "viewportExpansion": (
                self.config.viewport_expansion if viewport_expansion is None else viewport_expansion
            ),
            "debugMode": self.config.debug_mode,
        }

        try:
            raw = self.bridge.evaluate_dom_tree(args)
            built = self.tree_builder.build_from_result(raw)
            title = self.bridge.title()
        except Exception as e:
            logger.error(f"[Coordinator] Extraction failed for {url}: {e}")
            raise CaptureError(f"DOM extraction failed for {url}: {e}", cause=e) from e

        self._log_perf_metrics(raw)

        enhancement = self.enhancer.enhance(built.dom_tree, self._previous_hashes)
        self._previous_hashes = set(enhancement.current_hashes)

        snapshot = CaptureSnapshot(
            url=url,
            title=title,
            dom_tree=enhancement.enhanced_tree,
            selector_map=built.selector_map,
            viewport_info=self._viewport_info(),
            interactive_element_hashes=frozenset(enhancement.current_hashes),
        )

        current_records = RollingHistoryStore.records_from_tree(snapshot.dom_tree)
        history_text = self.history.format(
            current_records,
            max_elements=self.config.history_max_elements,
            current_url=url,
        )
        self.history.append(snapshot)

        logger.info(
            f"[Coordinator] Captured {url}: {len(built.selector_map)} indexed elements, "
            f"{len(enhancement.current_hashes)} clickable"
        )
        return CaptureResult(
            snapshot=snapshot,
            selector_map=built.selector_map,
            dom_tree=snapshot.dom_tree,
            history_text=history_text,
        )

    def formatted_history(self, max_elements: Optional[int] = None) -> str:
        """History text for the latest capture against the captures before it."""
        limit = self.config.history_max_elements if max_elements is None else max_elements
        return self.history.format_latest(max_elements=limit)

    def clear_history(self) -> None:
        self.history.clear()
        self._previous_hashes = set()
        logger.debug("[Coordinator] History cleared")

    def _empty_capture(self, url: str) -> CaptureResult:
        root = DomTreeBuilder.create_empty_body_node()
        snapshot = CaptureSnapshot(
            url=url,
            title="",
            dom_tree=root,
            selector_map={},
            viewport_info=ViewportInfo(),
        )
        return CaptureResult(snapshot=snapshot, selector_map={}, dom_tree=root)

    def _viewport_info(self) -> ViewportInfo:
        try:
            return self.bridge.get_viewport_info()
        except Exception as e:
            logger.warning(f"[Coordinator] Viewport query failed, using defaults: {e}")
            return ViewportInfo()

    @staticmethod
    def _log_perf_metrics(raw: Any) -> None:
        if not isinstance(raw, Mapping):
            return
        metrics = raw.get("perfMetrics")
        if metrics and logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"[Coordinator] DOM tree perf metrics: {json.dumps(metrics, default=str)}")
