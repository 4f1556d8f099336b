"""
Layout Engine

Computes positions for provider, service and resource nodes in the diagram.

Providers are stacked vertically. Inside a provider, service containers sit
on a grid whose column count follows a target aspect ratio; inside a service,
resources sit on a fixed-column grid. All positions are relative to the
parent container, so the layout is a pure function of the grouped input.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .aggregator import ProviderGroup, ResourceAggregator, ServiceGroup
from .parser import ParsedPlan, PlanIntegrityError, ResourceNode

logger = logging.getLogger(__name__)

PROVIDER = "provider"
SERVICE = "service"
RESOURCE = "resource"


@dataclass
class Position:
    """Position and size of an element."""
    x: float
    y: float
    width: float = 0
    height: float = 0

    def overlaps(self, other: "Position") -> bool:
        """True if the two boxes share any interior area."""
        return (
            self.x < other.x + other.width
            and other.x < self.x + self.width
            and self.y < other.y + other.height
            and other.y < self.y + self.height
        )


@dataclass
class LayoutConfig:
    """Configuration for layout engine."""
    padding: int = 16
    node_width: int = 220
    node_height: int = 85
    service_header: int = 30
    provider_header: int = 40
    resource_columns: int = 2
    aspect_ratio: Tuple[int, int] = (2, 1)  # (horizontal, vertical)
    provider_gap: int = 30

    def __post_init__(self):
        if self.resource_columns < 1:
            raise ValueError(f"resource_columns must be at least 1, got {self.resource_columns}")
        ratio_x, ratio_y = self.aspect_ratio
        if ratio_x <= 0 or ratio_y <= 0:
            raise ValueError(f"aspect_ratio values must be positive, got {self.aspect_ratio}")


@dataclass
class LayoutNode:
    """A positioned container or resource node.

    ``position`` is relative to the parent container; providers have no
    parent and are positioned absolutely.
    """
    id: str
    kind: str  # 'provider', 'service', 'resource'
    label: str
    position: Position
    parent_id: Optional[str] = None
    resource: Optional[ResourceNode] = None
    service: Optional[str] = None

    @property
    def is_container(self) -> bool:
        return self.kind != RESOURCE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "kind": self.kind,
            "label": self.label,
            "parent_id": self.parent_id,
            "position": {"x": self.position.x, "y": self.position.y},
        }
        if self.is_container:
            data["width"] = self.position.width
            data["height"] = self.position.height
        if self.resource is not None:
            data["service"] = self.service
            data["address"] = self.resource.address
            data["action"] = self.resource.action.value
        return data


@dataclass
class LayoutEdge:
    """A dependency edge, drawn from the dependency to the dependent."""
    source: str
    target: str

    @property
    def id(self) -> str:
        return f"{self.source}-{self.target}"

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}


@dataclass
class GraphLayout:
    """Result of the layout computation."""
    nodes: List[LayoutNode] = field(default_factory=list)
    edges: List[LayoutEdge] = field(default_factory=list)
    width: float = 0
    height: float = 0

    def get(self, node_id: str) -> Optional[LayoutNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def children_of(self, parent_id: str) -> List[LayoutNode]:
        return [n for n in self.nodes if n.parent_id == parent_id]

    @property
    def resource_nodes(self) -> List[LayoutNode]:
        return [n for n in self.nodes if n.kind == RESOURCE]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass
class _ServiceBox:
    group: ServiceGroup
    width: int
    height: int


def resolve_edges(resources: Sequence[ResourceNode]) -> List[LayoutEdge]:
    """Turn resource dependencies into edges between existing resources.

    A dependency matches the first resource whose address ends with it (so
    unqualified same-module references resolve) or whose id equals it.
    Unresolved dependencies and self references are dropped.
    """
    edges: List[LayoutEdge] = []
    seen: Set[Tuple[str, str]] = set()

    for resource in resources:
        for dep in resource.dependencies:
            target = _find_dependency(resources, dep)
            if target is None:
                logger.debug("Dropping unresolved dependency %s of %s", dep, resource.id)
                continue
            if target.id == resource.id:
                continue
            key = (target.id, resource.id)
            if key in seen:
                continue
            seen.add(key)
            edges.append(LayoutEdge(source=target.id, target=resource.id))

    return edges


def _find_dependency(resources: Iterable[ResourceNode], dep: str) -> Optional[ResourceNode]:
    # NOTE: suffix matching can pick module.a.x for a reference meant for module.b.x
    if not dep:
        return None
    for candidate in resources:
        if candidate.address.endswith(dep) or candidate.id == dep:
            return candidate
    return None


class LayoutEngine:
    """Computes positions for diagram elements."""

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()
        self.aggregator = ResourceAggregator()

    def compute_layout(self, parsed: ParsedPlan) -> GraphLayout:
        """Lay out all resources of a parsed plan.

        Raises:
            PlanIntegrityError: If two nodes would share an id
        """
        return self.layout_resources(parsed.resources)

    def layout_resources(self, resources: Sequence[ResourceNode]) -> GraphLayout:
        """Lay out a subset of resources, e.g. the result of a filter.

        Edges are only drawn between resources in ``resources``.
        """
        providers = self.aggregator.aggregate(resources)
        layout = self.layout_groups(providers)
        layout.edges = resolve_edges(resources)

        logger.debug(
            "Computed layout: %d nodes, %d edges, %dx%d",
            len(layout.nodes), len(layout.edges), layout.width, layout.height,
        )
        return layout

    def layout_groups(self, providers: Sequence[ProviderGroup]) -> GraphLayout:
        """Position already grouped providers (no edges)."""
        layout = GraphLayout()
        node_ids: Set[str] = set()
        y_offset = 0

        for provider in providers:
            provider_nodes = self._layout_provider(provider, y_offset)
            for node in provider_nodes:
                if node.id in node_ids:
                    raise PlanIntegrityError(f"Duplicate layout node id: {node.id}")
                node_ids.add(node.id)
            layout.nodes.extend(provider_nodes)

            box = provider_nodes[0].position
            layout.width = max(layout.width, box.width)
            layout.height = y_offset + box.height
            y_offset += box.height + self.config.provider_gap

        return layout

    def service_size(self, resource_count: int) -> Tuple[int, int]:
        """Width and height of a service container holding ``resource_count`` resources."""
        cfg = self.config
        cols = cfg.resource_columns
        rows = math.ceil(resource_count / cols)
        width = cols * cfg.node_width + (cols + 1) * cfg.padding
        height = cfg.service_header + rows * cfg.node_height + (rows + 1) * cfg.padding
        return width, height

    def service_grid_columns(self, service_count: int) -> int:
        """Number of service columns giving roughly the configured aspect ratio."""
        ratio_x, ratio_y = self.config.aspect_ratio
        return max(1, math.ceil(math.sqrt(service_count * ratio_x / ratio_y)))

    def resource_offset(self, index: int) -> Tuple[int, int]:
        """Position of the ``index``-th resource inside its service container."""
        cfg = self.config
        col = index % cfg.resource_columns
        row = index // cfg.resource_columns
        x = cfg.padding + col * (cfg.node_width + cfg.padding)
        y = cfg.service_header + cfg.padding + row * (cfg.node_height + cfg.padding)
        return x, y

    def _layout_provider(self, provider: ProviderGroup, y_offset: float) -> List[LayoutNode]:
        cfg = self.config
        provider_id = f"provider-{provider.name}"

        boxes = []
        for group in provider.services:
            width, height = self.service_size(len(group.resources))
            boxes.append(_ServiceBox(group=group, width=width, height=height))

        cols = self.service_grid_columns(len(boxes))
        rows = math.ceil(len(boxes) / cols)

        col_widths = [0] * cols
        row_heights = [0] * rows
        for index, box in enumerate(boxes):
            col = index % cols
            row = index // cols
            col_widths[col] = max(col_widths[col], box.width)
            row_heights[row] = max(row_heights[row], box.height)

        col_positions = [cfg.padding]
        for width in col_widths:
            col_positions.append(col_positions[-1] + width + cfg.padding)

        row_positions = [cfg.provider_header + cfg.padding]
        for height in row_heights:
            row_positions.append(row_positions[-1] + height + cfg.padding)

        provider_node = LayoutNode(
            id=provider_id,
            kind=PROVIDER,
            label=provider.name,
            position=Position(
                x=0,
                y=y_offset,
                width=col_positions[cols] + cfg.padding,
                height=row_positions[rows] + cfg.padding,
            ),
        )
        nodes = [provider_node]

        for index, box in enumerate(boxes):
            col = index % cols
            row = index // cols
            # provider names never contain "/"
            service_id = f"{provider_id}/{box.group.name}"

            nodes.append(LayoutNode(
                id=service_id,
                kind=SERVICE,
                label=box.group.name,
                parent_id=provider_id,
                position=Position(
                    x=col_positions[col],
                    y=row_positions[row],
                    width=box.width,
                    height=box.height,
                ),
            ))

            for resource_index, resource in enumerate(box.group.resources):
                x, y = self.resource_offset(resource_index)
                nodes.append(LayoutNode(
                    id=resource.id,
                    kind=RESOURCE,
                    label=resource.label,
                    parent_id=service_id,
                    position=Position(x=x, y=y, width=cfg.node_width, height=cfg.node_height),
                    resource=resource,
                    service=box.group.name,
                ))

        return nodes


def compute_layout(parsed: ParsedPlan, config: Optional[LayoutConfig] = None) -> GraphLayout:
    """Convenience wrapper around :meth:`LayoutEngine.compute_layout`."""
    return LayoutEngine(config).compute_layout(parsed)
