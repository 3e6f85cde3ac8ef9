"""
Browser Bridge - The only place PageSense talks to the browser.

The capture pipeline needs four things from a browser: the page URL and
title, one bulk DOM extraction, the current viewport, and per-element
bounding boxes looked up by XPath. ``SeleniumBridge`` provides them through
``driver.execute_script``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging

from pagesense.layers.sense.dom_tree import ViewportInfo

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver

logger = logging.getLogger(__name__)


BUILD_DOM_TREE_SCRIPT = r"""
const args = arguments[0] || {};
const doHighlightElements = !!args.doHighlightElements;
const focusHighlightIndex = args.focusHighlightIndex ?? -1;
const viewportExpansion = args.viewportExpansion ?? 0;
const debugMode = !!args.debugMode;

const HIGHLIGHT_CONTAINER_ID = "pagesense-highlight-container";
const INTERACTIVE_TAGS = new Set([
    "a", "button", "input", "select", "textarea", "details", "summary", "label", "option",
]);
const INTERACTIVE_ROLES = new Set([
    "button", "link", "menuitem", "menuitemcheckbox", "menuitemradio", "tab", "checkbox",
    "radio", "switch", "option", "combobox", "textbox", "searchbox", "slider", "spinbutton",
]);

const startTime = performance.now();
const map = {};
let nextId = 0;
let highlightIndex = 0;
const nodeMetrics = { totalNodes: 0, processedNodes: 0, skippedNodes: 0 };

const oldContainer = document.getElementById(HIGHLIGHT_CONTAINER_ID);
if (oldContainer) oldContainer.remove();

const getXPath = (el) => {
    const segments = [];
    let current = el;
    while (current && current.nodeType === Node.ELEMENT_NODE) {
        const tag = current.tagName.toLowerCase();
        let position = 1;
        let sibling = current.previousElementSibling;
        while (sibling) {
            if (sibling.tagName === current.tagName) position++;
            sibling = sibling.previousElementSibling;
        }
        let hasSameTagFollowing = false;
        sibling = current.nextElementSibling;
        while (sibling && !hasSameTagFollowing) {
            if (sibling.tagName === current.tagName) hasSameTagFollowing = true;
            sibling = sibling.nextElementSibling;
        }
        segments.unshift(position > 1 || hasSameTagFollowing ? `${tag}[${position}]` : tag);
        const parent = current.parentNode;
        current = parent && parent.nodeType === Node.DOCUMENT_FRAGMENT_NODE ? parent.host : current.parentElement;
    }
    return segments.join("/");
};

const isVisible = (el) => {
    const style = window.getComputedStyle(el);
    if (style.display === "none" || style.visibility === "hidden" || style.opacity === "0") return false;
    return el.offsetWidth > 0 || el.offsetHeight > 0 || el.getClientRects().length > 0;
};

const isInteractive = (el) => {
    const tag = el.tagName.toLowerCase();
    if (el.hasAttribute("disabled") || el.getAttribute("aria-disabled") === "true") return false;
    if (INTERACTIVE_TAGS.has(tag)) return tag !== "a" || el.hasAttribute("href") || el.hasAttribute("onclick");
    const role = (el.getAttribute("role") || "").toLowerCase();
    if (INTERACTIVE_ROLES.has(role)) return true;
    if (el.hasAttribute("onclick") || el.isContentEditable) return true;
    const tabindex = el.getAttribute("tabindex");
    return tabindex !== null && tabindex !== "-1";
};

const isTopElement = (el) => {
    const rect = el.getBoundingClientRect();
    if (rect.width === 0 || rect.height === 0) return false;
    const x = rect.left + rect.width / 2;
    const y = rect.top + rect.height / 2;
    if (x < 0 || y < 0 || x > window.innerWidth || y > window.innerHeight) return true;
    const root = el.getRootNode();
    const topEl = root instanceof ShadowRoot ? root.elementFromPoint(x, y) : document.elementFromPoint(x, y);
    let current = topEl;
    while (current) {
        if (current === el) return true;
        current = current.parentElement;
    }
    return false;
};

const isInViewport = (el) => {
    if (viewportExpansion === -1) return true;
    const rect = el.getBoundingClientRect();
    return !(
        rect.bottom < -viewportExpansion ||
        rect.top > window.innerHeight + viewportExpansion ||
        rect.right < -viewportExpansion ||
        rect.left > window.innerWidth + viewportExpansion
    );
};

const highlight = (el, index) => {
    let container = document.getElementById(HIGHLIGHT_CONTAINER_ID);
    if (!container) {
        container = document.createElement("div");
        container.id = HIGHLIGHT_CONTAINER_ID;
        container.style.cssText = "position:fixed;top:0;left:0;pointer-events:none;z-index:2147483647;";
        document.body.appendChild(container);
    }
    const rect = el.getBoundingClientRect();
    const box = document.createElement("div");
    box.style.cssText = `position:fixed;border:2px solid #ff6b00;left:${rect.left}px;top:${rect.top}px;` +
        `width:${rect.width}px;height:${rect.height}px;box-sizing:border-box;`;
    const label = document.createElement("span");
    label.textContent = String(index);
    label.style.cssText = "position:absolute;top:-16px;left:0;background:#ff6b00;color:#fff;font:11px monospace;padding:0 3px;";
    box.appendChild(label);
    container.appendChild(box);
};

const buildNode = (node) => {
    nodeMetrics.totalNodes++;
    if (node.nodeType === Node.TEXT_NODE) {
        const text = node.textContent.trim();
        if (!text) { nodeMetrics.skippedNodes++; return null; }
        const parent = node.parentElement;
        const id = String(nextId++);
        map[id] = { type: "TEXT_NODE", text: text, isVisible: !!parent && isVisible(parent) };
        nodeMetrics.processedNodes++;
        return id;
    }
    if (node.nodeType !== Node.ELEMENT_NODE) { nodeMetrics.skippedNodes++; return null; }
    const tag = node.tagName.toLowerCase();
    if (["script", "style", "noscript", "template", "svg"].includes(tag) || node.id === HIGHLIGHT_CONTAINER_ID) {
        nodeMetrics.skippedNodes++;
        return null;
    }

    const id = String(nextId++);
    const attributes = {};
    for (const attr of node.attributes) attributes[attr.name] = attr.value;
    const data = {
        tagName: tag,
        attributes: attributes,
        xpath: getXPath(node),
        children: [],
        isVisible: isVisible(node),
        shadowRoot: !!node.shadowRoot,
    };
    if (data.isVisible) {
        data.isInteractive = isInteractive(node);
        if (data.isInteractive) {
            data.isTopElement = isTopElement(node);
            data.isInViewport = isInViewport(node);
            if (data.isTopElement && data.isInViewport) {
                data.highlightIndex = highlightIndex++;
                if (doHighlightElements && (focusHighlightIndex < 0 || focusHighlightIndex === data.highlightIndex)) {
                    highlight(node, data.highlightIndex);
                }
            }
        }
    }
    map[id] = data;
    nodeMetrics.processedNodes++;

    const childNodes = node.shadowRoot
        ? [...node.shadowRoot.childNodes, ...node.childNodes]
        : node.tagName.toLowerCase() === "iframe" ? [] : node.childNodes;
    for (const child of childNodes) {
        const childId = buildNode(child);
        if (childId !== null) data.children.push(childId);
    }
    return id;
};

const rootId = buildNode(document.body);
const result = { rootId: rootId, map: map };
if (debugMode) {
    result.perfMetrics = { totalTimeMs: performance.now() - startTime, nodeMetrics: nodeMetrics };
}
return result;
"""

VIEWPORT_SCRIPT = """
return {
    scrollX: window.scrollX,
    scrollY: window.scrollY,
    width: window.innerWidth,
    height: window.innerHeight,
};
"""

ELEMENT_GEOMETRY_SCRIPT = """
const xpath = arguments[0];
let element = null;
try {
    element = document.evaluate(
        xpath, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null
    ).singleNodeValue;
} catch (e) {
    return null;
}
if (!element || typeof element.getBoundingClientRect !== "function") return null;
const rect = element.getBoundingClientRect();
return {
    left: rect.left,
    top: rect.top,
    right: rect.right,
    bottom: rect.bottom,
    width: rect.width,
    height: rect.height,
    scrollX: window.scrollX,
    scrollY: window.scrollY,
};
"""


class BrowserBridge(ABC):
    """What the capture pipeline needs from a browser."""

    @abstractmethod
    def current_url(self) -> str:
        pass

    @abstractmethod
    def title(self) -> str:
        pass

    @abstractmethod
    def evaluate_dom_tree(self, args: Dict[str, Any]) -> Any:
        """
        Run the DOM extraction script.

        Args:
            args: ``doHighlightElements``, ``focusHighlightIndex``,
                ``viewportExpansion`` and ``debugMode``

        Returns:
            The raw ``{rootId, map, perfMetrics?}`` envelope
        """
        pass

    @abstractmethod
    def get_viewport_info(self) -> ViewportInfo:
        pass

    @abstractmethod
    def get_element_geometry(self, xpath: str) -> Optional[Dict[str, Any]]:
        """
        Look up an element's bounding box by XPath.

        Returns:
            ``{left, top, right, bottom, width, height, scrollX, scrollY}``,
            or None if no element matches
        """
        pass


class SeleniumBridge(BrowserBridge):
    """
    Browser bridge backed by a Selenium WebDriver.

    Example:
        >>> driver = create_driver(headless=True)
        >>> driver.get("https://example.com")
        >>> bridge = SeleniumBridge(driver)
        >>> bridge.get_viewport_info()
    """

    def __init__(self, driver: "WebDriver"):
        self.driver = driver

    def current_url(self) -> str:
        return self.driver.current_url or ""

    def title(self) -> str:
        return self.driver.title or ""

    def evaluate_dom_tree(self, args: Dict[str, Any]) -> Any:
        return self.driver.execute_script(BUILD_DOM_TREE_SCRIPT, args)

    def get_viewport_info(self) -> ViewportInfo:
        data = self.driver.execute_script(VIEWPORT_SCRIPT)
        if not data:
            logger.warning("[SeleniumBridge] Viewport script returned nothing, using defaults")
            return ViewportInfo()
        return ViewportInfo.from_dict(data)

    def get_element_geometry(self, xpath: str) -> Optional[Dict[str, Any]]:
        # The extraction script emits xpaths relative to the document root.
        query = xpath if xpath.startswith("/") or xpath.startswith("(") else f"/{xpath}"
        return self.driver.execute_script(ELEMENT_GEOMETRY_SCRIPT, query)
