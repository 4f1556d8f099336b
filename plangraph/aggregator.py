"""
Resource Aggregator

Classifies resource types into provider services and groups resource nodes
into a provider -> service hierarchy for the layout engine.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, NamedTuple, Optional

from .parser import ResourceNode

logger = logging.getLogger(__name__)

# Prefixes stripped when the type does not start with the provider's own name
FALLBACK_PROVIDER_PREFIXES = ("google_", "aws_", "azurerm_")

# Services whose names span more than one underscore-separated token
KNOWN_MULTI_WORD_SERVICES = (
    "cloud_run",
    "cloud_sql",
    "cloud_storage",
    "cloud_functions",
    "compute_instance",
    "container_cluster",
    "bigquery",
    "api_gateway",
    "app_engine",
    "cloud_build",
    "iam_role",
    "iam_policy",
    "iam_user",
    "s3_bucket",
    "ec2_instance",
    "rds_cluster",
    "lambda_function",
    "dynamodb_table",
)

VERSION_TOKEN = re.compile(r"^v\d+$")


class ServiceClassification(NamedTuple):
    service: str
    resource_name: str


def short_provider_name(provider: str) -> str:
    """Last path segment of a provider identifier.

    Examples:
        "registry.terraform.io/hashicorp/aws" -> "aws"
        'provider["registry.terraform.io/hashicorp/google"]' -> "google"
    """
    last = (provider or "").split("/")[-1]
    return last.rstrip('"]')


def _strip_provider_prefix(resource_type: str, provider: str) -> str:
    short = short_provider_name(provider)
    if short and resource_type.startswith(f"{short}_"):
        return resource_type[len(short) + 1:]
    for prefix in FALLBACK_PROVIDER_PREFIXES:
        if resource_type.startswith(prefix):
            return resource_type[len(prefix):]
    return resource_type


def extract_service_from_type(resource_type: str, provider: str) -> ServiceClassification:
    """Split a resource type into its service and resource name.

    Examples:
        ("aws_s3_bucket_policy", ".../aws") -> ("s3_bucket", "policy")
        ("google_cloud_run_v2_job", ".../google") -> ("cloud_run_v2", "job")
        ("aws_instance", ".../aws") -> ("instance", "instance")
        ("azurerm_key_vault_secret", ".../azurerm") -> ("key", "vault_secret")
    """
    remaining = _strip_provider_prefix(resource_type or "", provider)
    parts = remaining.split("_")

    if len(parts) == 1:
        return ServiceClassification(parts[0], parts[0])

    for known in KNOWN_MULTI_WORD_SERVICES:
        if not remaining.startswith(known):
            continue
        rest = remaining[len(known):]
        if rest and not rest.startswith("_"):
            continue
        if not rest:
            return ServiceClassification(known, known.split("_")[-1])

        rest_parts = rest[1:].split("_")
        if len(rest_parts) > 1 and VERSION_TOKEN.match(rest_parts[0]):
            return ServiceClassification(f"{known}_{rest_parts[0]}", "_".join(rest_parts[1:]))
        return ServiceClassification(known, rest[1:])

    service_end = 1
    for i in range(1, len(parts) - 1):
        if VERSION_TOKEN.match(parts[i]):
            service_end = i + 1
            break

    service = "_".join(parts[:service_end])
    resource_name = "_".join(parts[service_end:]) or parts[-1]
    return ServiceClassification(service, resource_name)


@dataclass
class ServiceGroup:
    """Resources of one provider service, in first-seen order."""

    name: str
    resources: List[ResourceNode] = field(default_factory=list)


@dataclass
class ProviderGroup:
    """Service groups of one provider, in first-seen order."""

    name: str
    services: List[ServiceGroup] = field(default_factory=list)

    def get_service(self, name: str) -> Optional[ServiceGroup]:
        for service in self.services:
            if service.name == name:
                return service
        return None

    @property
    def resource_count(self) -> int:
        return sum(len(s.resources) for s in self.services)


class ResourceAggregator:
    """Groups resource nodes by provider, then by service."""

    def aggregate(self, resources: Iterable[ResourceNode]) -> List[ProviderGroup]:
        providers: List[ProviderGroup] = []
        by_name = {}

        for resource in resources:
            provider_key = short_provider_name(resource.provider)
            service_key = extract_service_from_type(resource.type, resource.provider).service

            provider_group = by_name.get(provider_key)
            if provider_group is None:
                provider_group = ProviderGroup(name=provider_key)
                by_name[provider_key] = provider_group
                providers.append(provider_group)

            service_group = provider_group.get_service(service_key)
            if service_group is None:
                service_group = ServiceGroup(name=service_key)
                provider_group.services.append(service_group)
            service_group.resources.append(resource)

        logger.debug(
            "Grouped resources into %d providers, %d services",
            len(providers), sum(len(p.services) for p in providers),
        )
        return providers
