"""
Terraform Plan Parser

Normalizes `terraform show -json` plan documents into resource nodes and
extracts declared dependencies from the configuration tree.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# Symbols that never name another resource
NON_RESOURCE_PREFIXES = ("var.", "local.")


class PlanIntegrityError(ValueError):
    """Raised when plan data violates an identity invariant (e.g. duplicate addresses)."""


class ActionType(str, Enum):
    """Primary action of a resource change."""

    NOOP = "no-op"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def label(self) -> str:
        return action_label(self)


# Highest priority first. Delete must win over create in a replace.
ACTION_PRIORITY: Tuple[ActionType, ...] = (
    ActionType.DELETE,
    ActionType.CREATE,
    ActionType.UPDATE,
    ActionType.READ,
)

_ACTION_LABELS = {
    ActionType.CREATE: "Create",
    ActionType.UPDATE: "Update",
    ActionType.DELETE: "Delete",
    ActionType.READ: "Read",
    ActionType.NOOP: "No Change",
}


def action_label(action: Any) -> str:
    """Human-readable label for an action, falling back to the no-op label."""
    try:
        return _ACTION_LABELS[ActionType(action)]
    except (TypeError, ValueError):
        return _ACTION_LABELS[ActionType.NOOP]


def resolve_primary_action(actions: Optional[Iterable[str]]) -> ActionType:
    """Reduce the raw action list of a change to a single action.

    Examples:
        ["create", "delete"] -> ActionType.DELETE
        ["update"] -> ActionType.UPDATE
        [] -> ActionType.NOOP
    """
    present = set(actions or ())
    for action in ACTION_PRIORITY:
        if action.value in present:
            return action
    return ActionType.NOOP


@dataclass(frozen=True)
class ResourceNode:
    """A normalized resource change."""

    id: str
    address: str
    type: str
    name: str
    provider: str
    action: ActionType
    module: Optional[str] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    dependencies: Tuple[str, ...] = ()

    @property
    def label(self) -> str:
        """Label shown on graph nodes."""
        return f"{self.type}.{self.name}"


@dataclass(frozen=True)
class PlanSummary:
    """Number of resources per primary action."""

    create: int = 0
    update: int = 0
    delete: int = 0
    read: int = 0
    no_op: int = 0

    _FIELDS = {
        ActionType.CREATE: "create",
        ActionType.UPDATE: "update",
        ActionType.DELETE: "delete",
        ActionType.READ: "read",
        ActionType.NOOP: "no_op",
    }

    @classmethod
    def from_actions(cls, actions: Iterable[ActionType]) -> "PlanSummary":
        """Count a sequence of primary actions."""
        counts = Counter(cls._FIELDS.get(action, "no_op") for action in actions)
        return cls(**counts)

    def count(self, action: ActionType) -> int:
        return getattr(self, self._FIELDS.get(action, "no_op"))

    @property
    def total(self) -> int:
        return self.create + self.update + self.delete + self.read + self.no_op

    def as_dict(self) -> Dict[str, int]:
        return {
            "create": self.create,
            "update": self.update,
            "delete": self.delete,
            "read": self.read,
            "noOp": self.no_op,
        }


@dataclass(frozen=True)
class ParsedPlan:
    """Result of normalizing a plan document."""

    terraform_version: str = ""
    format_version: str = ""
    resources: Tuple[ResourceNode, ...] = ()
    summary: PlanSummary = field(default_factory=PlanSummary)

    def get(self, address: str) -> Optional[ResourceNode]:
        """Find a resource node by address."""
        for resource in self.resources:
            if resource.address == address:
                return resource
        return None


# Value kinds of a JSON tree
SCALAR = "scalar"
SEQUENCE = "sequence"
MAPPING = "mapping"


def _classify_value(value: Any) -> str:
    if isinstance(value, Mapping):
        return MAPPING
    if isinstance(value, (list, tuple)):
        return SEQUENCE
    return SCALAR


def extract_references(expressions: Any) -> List[str]:
    """Collect cross-resource references from an expressions tree.

    Every mapping level may carry a ``references`` list. Entries starting with
    ``var.`` or ``local.`` are skipped; duplicates are kept.

    Args:
        expressions: Any JSON value (usually a resource's ``expressions`` dict)

    Returns:
        References in traversal order
    """
    refs: List[str] = []
    _collect_references(expressions, refs)
    return refs


def _collect_references(value: Any, refs: List[str]) -> None:
    kind = _classify_value(value)
    if kind == SCALAR:
        return

    if kind == SEQUENCE:
        for item in value:
            _collect_references(item, refs)
        return

    references = value.get("references")
    if isinstance(references, list):
        for ref in references:
            if isinstance(ref, str) and not ref.startswith(NON_RESOURCE_PREFIXES):
                refs.append(ref)

    for child in value.values():
        _collect_references(child, refs)


def extract_dependencies(root_module: Optional[Mapping[str, Any]]) -> Dict[str, List[str]]:
    """Build the dependency map for a configuration tree.

    Resources inside module calls are keyed with their module prefix, e.g. a
    resource ``aws_vpc.main`` in call ``network`` nested in call ``core`` is
    keyed ``module.core.module.network.aws_vpc.main``.

    Args:
        root_module: ``configuration.root_module`` of a plan, or None

    Returns:
        Mapping of resource address to its dependency fragments
    """
    deps: Dict[str, List[str]] = {}
    _process_module(root_module, "", deps)
    return deps


def _process_module(module: Optional[Mapping[str, Any]], prefix: str, deps: Dict[str, List[str]]) -> None:
    if not module:
        return

    for resource in module.get("resources") or []:
        address = resource.get("address", "")
        if prefix:
            address = f"{prefix}.{address}"

        resource_deps: List[str] = list(resource.get("depends_on") or [])
        expressions = resource.get("expressions")
        if expressions:
            resource_deps.extend(extract_references(expressions))

        deps[address] = resource_deps

    for call_name, call in (module.get("module_calls") or {}).items():
        call_prefix = f"{prefix}.module.{call_name}" if prefix else f"module.{call_name}"
        _process_module((call or {}).get("module"), call_prefix, deps)


def configuration_address(change: Mapping[str, Any]) -> str:
    """Address of the declaring configuration block for a resource change.

    Differs from the instance address: no count/for_each index, and data
    sources carry the ``data.`` prefix.
    """
    if change.get("mode") == "data":
        address = f"data.{change.get('type', '')}.{change.get('name', '')}"
    else:
        address = f"{change.get('type', '')}.{change.get('name', '')}"

    module_address = change.get("module_address")
    if module_address:
        # module.app[0] -> module.app
        module_address = re.sub(r"\[[^\]]*\]", "", module_address)
        return f"{module_address}.{address}"
    return address


class PlanParser:
    """Parses plan JSON documents into :class:`ParsedPlan`."""

    def parse(self, plan: Mapping[str, Any]) -> ParsedPlan:
        """Normalize a plan document.

        Raises:
            PlanIntegrityError: If two resource changes share an address
        """
        configuration = plan.get("configuration") or {}
        dependency_map = extract_dependencies(configuration.get("root_module"))

        resources: List[ResourceNode] = []
        seen: set = set()

        for change in plan.get("resource_changes") or []:
            node = self._build_node(change, dependency_map)
            if node.id in seen:
                raise PlanIntegrityError(f"Duplicate resource address in plan: {node.id}")
            seen.add(node.id)
            resources.append(node)

        summary = PlanSummary.from_actions(node.action for node in resources)

        logger.debug(
            "Parsed plan: %d resources (create=%d update=%d delete=%d read=%d no-op=%d)",
            len(resources), summary.create, summary.update, summary.delete,
            summary.read, summary.no_op,
        )

        return ParsedPlan(
            terraform_version=plan.get("terraform_version") or "",
            format_version=plan.get("format_version") or "",
            resources=tuple(resources),
            summary=summary,
        )

    def _build_node(self, change: Mapping[str, Any], dependency_map: Dict[str, List[str]]) -> ResourceNode:
        details = change.get("change") or {}
        address = change.get("address", "")
        return ResourceNode(
            id=address,
            address=address,
            type=change.get("type", ""),
            name=change.get("name", ""),
            provider=change.get("provider_name", ""),
            action=resolve_primary_action(details.get("actions")),
            module=change.get("module_address"),
            before=details.get("before"),
            after=details.get("after"),
            dependencies=tuple(dependency_map.get(configuration_address(change), [])),
        )


def parse_plan(plan: Mapping[str, Any]) -> ParsedPlan:
    """Convenience wrapper around :meth:`PlanParser.parse`."""
    return PlanParser().parse(plan)
