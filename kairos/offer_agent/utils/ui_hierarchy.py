import re
import time
import xml.etree.ElementTree as ET
from collections import deque
from collections.abc import Callable, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, ValidationError
from rich.tree import Tree

from kairos.offer_agent.constants import DETAIL_SCREEN_KEY_PHRASES
from kairos.offer_agent.utils.errors import ControllerErrors, StaleSnapshotError
from kairos.offer_agent.utils.logger import get_logger

logger = get_logger(__name__)

_BOUNDS_PATTERN = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")


class Point(BaseModel):
    x: int
    y: int


class ElementBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_corners(cls, left: int, top: int, right: int, bottom: int) -> "ElementBounds":
        return cls(x=left, y=top, width=right - left, height=bottom - top)

    @property
    def left(self) -> int:
        return self.x

    @property
    def top(self) -> int:
        return self.y

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def get_center(self) -> Point:
        return Point(x=self.x + self.width // 2, y=self.y + self.height // 2)

    def intersects(self, other: "ElementBounds") -> bool:
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )

    def contains(self, other: "ElementBounds") -> bool:
        return (
            self.left <= other.left
            and self.top <= other.top
            and self.right >= other.right
            and self.bottom >= other.bottom
        )

    def is_above(self, other: "ElementBounds") -> bool:
        """True when this rectangle ends before `other` starts vertically."""
        return self.bottom < other.top

    def is_vertically_aligned_with(self, other: "ElementBounds") -> bool:
        return self.top == other.top and self.bottom == other.bottom


EMPTY_BOUNDS = ElementBounds(x=0, y=0, width=0, height=0)


def parse_bounds(bounds_data: str | dict | None) -> ElementBounds | None:
    """
    Parses bounds coming either as a uiautomator string ("[x1,y1][x2,y2]")
    or as a flat dict with x/y/width/height.
    """
    if not bounds_data:
        return None

    if isinstance(bounds_data, dict):
        try:
            return ElementBounds(**bounds_data)
        except ValidationError as e:
            logger.error(f"Failed to validate bounds dictionary: {e}")
            return None

    if isinstance(bounds_data, str):
        match = _BOUNDS_PATTERN.match(bounds_data.strip())
        if match:
            x1, y1, x2, y2 = map(int, match.groups())
            return ElementBounds.from_corners(x1, y1, x2, y2)

    logger.warning(f"Could not parse bounds data: {bounds_data}")
    return None


class NodeAttributes(BaseModel):
    """Immutable attributes of one element of a screen snapshot."""

    model_config = ConfigDict(frozen=True)

    class_name: str = ""
    text: str | None = None
    content_description: str | None = None
    resource_id: str | None = None
    package: str | None = None
    clickable: bool = False
    visible: bool = True
    enabled: bool = True
    scrollable: bool = False
    focused: bool = False
    bounds: ElementBounds = EMPTY_BOUNDS


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _none_if_blank(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    return value


def attributes_from_raw(raw: dict) -> NodeAttributes:
    """Maps uiautomator attribute names ("resource-id", "content-desc"...) to NodeAttributes."""
    return NodeAttributes(
        class_name=raw.get("class") or "",
        text=_none_if_blank(raw.get("text")),
        content_description=_none_if_blank(raw.get("content-desc") or raw.get("accessibilityText")),
        resource_id=_none_if_blank(raw.get("resource-id") or raw.get("resourceId")),
        package=_none_if_blank(raw.get("package")),
        clickable=_as_bool(raw.get("clickable"), False),
        visible=_as_bool(raw.get("visible-to-user"), True),
        enabled=_as_bool(raw.get("enabled"), True),
        scrollable=_as_bool(raw.get("scrollable"), False),
        focused=_as_bool(raw.get("focused"), False),
        bounds=parse_bounds(raw.get("bounds")) or EMPTY_BOUNDS,
    )


class Snapshot:
    """
    One immutable, point-in-time read of the observed screen.

    The snapshot is an arena: it owns every node record, and `UiNode` objects are only
    (snapshot, index) handles into it. Releasing the snapshot invalidates all of its handles at
    once; any later access raises `StaleSnapshotError`.
    """

    def __init__(
        self,
        records: list[NodeAttributes],
        parents: list[int | None],
        children: list[list[int]],
        captured_at: float | None = None,
    ):
        if not records:
            raise ControllerErrors("A snapshot needs at least a root node")
        self._records = records
        self._parents = parents
        self._children = children
        self._released = False
        self.captured_at = captured_at if captured_at is not None else time.monotonic()

    def __enter__(self) -> "Snapshot":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        state = "released" if self._released else "alive"
        return f"<Snapshot nodes={len(self._records)} {state}>"

    @property
    def released(self) -> bool:
        return self._released

    @property
    def root(self) -> "UiNode":
        self._ensure_alive()
        return UiNode(self, 0)

    @property
    def package(self) -> str | None:
        """Package of the first node that declares one."""
        self._ensure_alive()
        return next((r.package for r in self._records if r.package), None)

    def release(self) -> None:
        self._released = True

    def _ensure_alive(self) -> None:
        if self._released:
            raise StaleSnapshotError("Node handle used after its snapshot was released")

    def _record(self, index: int) -> NodeAttributes:
        self._ensure_alive()
        return self._records[index]

    def _parent_index(self, index: int) -> int | None:
        self._ensure_alive()
        return self._parents[index]

    def _child_indices(self, index: int) -> list[int]:
        self._ensure_alive()
        return self._children[index]

    @classmethod
    def _build(
        cls,
        root: object,
        get_attributes: Callable[[object], NodeAttributes],
        get_children: Callable[[object], Iterable[object]],
    ) -> "Snapshot":
        records: list[NodeAttributes] = []
        parents: list[int | None] = []
        children: list[list[int]] = []

        queue: deque[tuple[object, int | None]] = deque([(root, None)])
        while queue:
            raw, parent_index = queue.popleft()
            index = len(records)
            records.append(get_attributes(raw))
            parents.append(parent_index)
            children.append([])
            if parent_index is not None:
                children[parent_index].append(index)
            for child in get_children(raw):
                queue.append((child, index))

        return cls(records=records, parents=parents, children=children)

    @classmethod
    def from_rich_hierarchy(cls, root: dict) -> "Snapshot":
        """Builds a snapshot from the nested `{"attributes": {...}, "children": [...]}` format."""
        return cls._build(
            root,
            get_attributes=lambda node: attributes_from_raw(node.get("attributes", {})),
            get_children=lambda node: node.get("children", []),
        )

    @classmethod
    def from_uiautomator_xml(cls, xml: str) -> "Snapshot":
        """Builds a snapshot from a `uiautomator dump` document."""
        try:
            document = ET.fromstring(xml)
        except ET.ParseError as e:
            raise ControllerErrors(f"Invalid hierarchy dump: {e}") from e

        def get_attributes(element: ET.Element) -> NodeAttributes:
            if element.tag == "hierarchy":
                first = element.find("node")
                package = first.get("package") if first is not None else None
                return NodeAttributes(class_name="hierarchy", package=package)
            return attributes_from_raw(dict(element.attrib))

        return cls._build(
            document,
            get_attributes=get_attributes,
            get_children=lambda element: element.findall("node"),
        )


class UiNode:
    """Handle to one node of a `Snapshot`. Valid only while the snapshot is alive."""

    __slots__ = ("_snapshot", "_index")

    def __init__(self, snapshot: Snapshot, index: int):
        self._snapshot = snapshot
        self._index = index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UiNode):
            return NotImplemented
        return self._snapshot is other._snapshot and self._index == other._index

    def __hash__(self) -> int:
        return hash((id(self._snapshot), self._index))

    def __repr__(self) -> str:
        if self._snapshot.released:
            return f"<UiNode #{self._index} (released)>"
        return f"<UiNode #{self._index} {self.widget} text={self.text!r}>"

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def index(self) -> int:
        return self._index

    @property
    def attributes(self) -> NodeAttributes:
        return self._snapshot._record(self._index)

    @property
    def text(self) -> str | None:
        return self.attributes.text

    @property
    def content_description(self) -> str | None:
        return self.attributes.content_description

    @property
    def label(self) -> str | None:
        return self.text or self.content_description

    @property
    def class_name(self) -> str:
        return self.attributes.class_name

    @property
    def widget(self) -> str:
        """Last segment of the class name, e.g. "Button" for android.widget.Button."""
        return self.class_name.rsplit(".", 1)[-1]

    @property
    def resource_id(self) -> str | None:
        return self.attributes.resource_id

    @property
    def clickable(self) -> bool:
        return self.attributes.clickable

    @property
    def visible(self) -> bool:
        return self.attributes.visible

    @property
    def enabled(self) -> bool:
        return self.attributes.enabled

    @property
    def scrollable(self) -> bool:
        return self.attributes.scrollable

    @property
    def bounds(self) -> ElementBounds:
        return self.attributes.bounds

    @property
    def is_actionable(self) -> bool:
        attributes = self.attributes
        return attributes.clickable and attributes.visible and attributes.enabled

    @property
    def parent(self) -> "UiNode | None":
        parent_index = self._snapshot._parent_index(self._index)
        if parent_index is None:
            return None
        return UiNode(self._snapshot, parent_index)

    @property
    def children(self) -> list["UiNode"]:
        return [UiNode(self._snapshot, i) for i in self._snapshot._child_indices(self._index)]

    @property
    def child_count(self) -> int:
        return len(self._snapshot._child_indices(self._index))


def text_contains_any(text: str | None, phrases: Iterable[str]) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(phrase.lower() in lowered for phrase in phrases)


def iter_bfs(root: UiNode) -> Iterator[UiNode]:
    queue: deque[UiNode] = deque([root])
    while queue:
        node = queue.popleft()
        yield node
        queue.extend(node.children)


def find_all(root: UiNode, predicate: Callable[[UiNode], bool]) -> list[UiNode]:
    """Breadth-first search collecting every node (root included) matching `predicate`."""
    return [node for node in iter_bfs(root) if predicate(node)]


def find_first(root: UiNode, predicate: Callable[[UiNode], bool]) -> UiNode | None:
    return next((node for node in iter_bfs(root) if predicate(node)), None)


def find_by_resource_id(root: UiNode, resource_id: str) -> UiNode | None:
    return find_first(root, lambda node: node.resource_id == resource_id)


def is_target_screen(root: UiNode, key_phrases: Iterable[str] = DETAIL_SCREEN_KEY_PHRASES) -> bool:
    """True if any node's text contains one of the key phrases (case-insensitive)."""
    phrases = tuple(key_phrases)
    return find_first(root, lambda node: text_contains_any(node.text, phrases)) is not None


def describe_node(node: UiNode) -> str:
    parts = [f"Class: {node.class_name}"]
    if node.text is not None:
        parts.append(f'Text: "{node.text}"')
    if node.content_description is not None:
        parts.append(f'Desc: "{node.content_description}"')
    if node.resource_id is not None:
        parts.append(f'ID: "{node.resource_id}"')
    parts.append(f"Clickable: {node.clickable}")
    parts.append(f"Bounds: [{node.bounds.left},{node.bounds.top}][{node.bounds.right},{node.bounds.bottom}]")
    return ", ".join(parts)


def dump_tree(root: UiNode) -> Tree:
    """Renders the snapshot below `root` as a rich Tree, one line per node."""
    tree = Tree(describe_node(root))
    stack: list[tuple[UiNode, Tree]] = [(root, tree)]
    while stack:
        node, branch = stack.pop()
        for child in node.children:
            stack.append((child, branch.add(describe_node(child))))
    return tree
