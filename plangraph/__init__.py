"""plangraph - Lay out Terraform plans as provider/service/resource graphs."""

__version__ = "1.0.0"

from .aggregator import ResourceAggregator, extract_service_from_type
from .layout import GraphLayout, LayoutConfig, LayoutEngine, compute_layout
from .parser import ActionType, ParsedPlan, PlanIntegrityError, PlanParser, parse_plan

__all__ = [
    "__version__",
    "ActionType",
    "GraphLayout",
    "LayoutConfig",
    "LayoutEngine",
    "ParsedPlan",
    "PlanIntegrityError",
    "PlanParser",
    "ResourceAggregator",
    "compute_layout",
    "extract_service_from_type",
    "parse_plan",
]
