"""Shared builders for plan test data."""

AWS = "registry.terraform.io/hashicorp/aws"
GOOGLE = "registry.terraform.io/hashicorp/google"


def make_change(address, type_, name, actions, provider=AWS, mode="managed",
                module_address=None, before=None, after=None):
    """Build a resource_changes entry."""
    change = {
        "address": address,
        "mode": mode,
        "type": type_,
        "name": name,
        "provider_name": provider,
        "change": {"actions": actions, "before": before, "after": after},
    }
    if module_address:
        change["module_address"] = module_address
    return change
