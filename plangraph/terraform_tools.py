"""
Terraform CLI Tools Integration

Loads plan documents from `terraform show -json` output, either from a saved
JSON file or by running terraform against a binary plan file.
"""

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class PlanLoadError(RuntimeError):
    """Raised when a plan document cannot be read or is not a plan."""


def validate_plan_document(data: Any, source: str = "plan") -> Dict[str, Any]:
    """Check the top-level shape of a plan document.

    Only the structure the parser relies on is checked; missing sections are
    allowed.

    Raises:
        PlanLoadError: If the document is not a JSON object or its sections
            have the wrong type
    """
    if not isinstance(data, dict):
        raise PlanLoadError(f"{source}: expected a JSON object, got {type(data).__name__}")

    resource_changes = data.get("resource_changes")
    if resource_changes is not None and not isinstance(resource_changes, list):
        raise PlanLoadError(f"{source}: 'resource_changes' must be a list")

    for index, change in enumerate(resource_changes or []):
        if not isinstance(change, dict) or "address" not in change:
            raise PlanLoadError(f"{source}: resource_changes[{index}] has no address")

    configuration = data.get("configuration")
    if configuration is not None and not isinstance(configuration, dict):
        raise PlanLoadError(f"{source}: 'configuration' must be an object")

    return data


def parse_plan_json(content: str, source: str = "plan") -> Dict[str, Any]:
    """Parse and validate plan JSON text."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise PlanLoadError(f"{source}: invalid JSON: {e}") from e
    return validate_plan_document(data, source)


def load_plan_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a plan JSON file written by `terraform show -json`.

    Raises:
        PlanLoadError: If the file is missing, unreadable or not a plan
    """
    path = Path(path)
    if not path.exists():
        raise PlanLoadError(f"Plan file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PlanLoadError(f"Could not read {path}: {e}") from e

    plan = parse_plan_json(content, source=str(path))
    logger.info("Loaded plan from %s: %d resource changes", path.name, len(plan.get("resource_changes") or []))
    return plan


class TerraformToolsRunner:
    """Executes terraform commands and parses their output."""

    TIMEOUT_SHOW = 120  # seconds

    def __init__(self, terraform_dir: Union[str, Path] = ".", terraform_bin: str = "terraform"):
        self.terraform_dir = Path(terraform_dir)
        self.terraform_bin = terraform_bin

    def check_terraform_available(self) -> bool:
        """Check if terraform CLI is available in PATH."""
        return shutil.which(self.terraform_bin) is not None

    def check_initialized(self) -> bool:
        """Check if terraform init has been run in the directory."""
        terraform_dir = self.terraform_dir / ".terraform"
        return terraform_dir.exists() and terraform_dir.is_dir()

    def run_show_json(self, plan_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """Run `terraform show -json [plan_file]` and return the parsed document.

        Raises:
            PlanLoadError: If terraform is missing, fails, times out or prints
                something that is not a plan document
        """
        if not self.check_terraform_available():
            raise PlanLoadError(
                "Terraform CLI not found in PATH.\n"
                "Please install Terraform: https://developer.hashicorp.com/terraform/install"
            )

        if not self.check_initialized():
            logger.warning(
                "Terraform not initialized in %s. Run 'terraform init' first.",
                self.terraform_dir
            )

        cmd = [self.terraform_bin, "show", "-json"]
        if plan_file is not None:
            cmd.append(str(plan_file))

        try:
            result = subprocess.run(
                cmd,
                cwd=self.terraform_dir,
                capture_output=True,
                text=True,
                timeout=self.TIMEOUT_SHOW
            )
        except subprocess.TimeoutExpired as e:
            raise PlanLoadError(f"terraform show timed out after {self.TIMEOUT_SHOW}s") from e
        except OSError as e:
            raise PlanLoadError(f"Error running terraform: {e}") from e

        if result.returncode != 0:
            raise PlanLoadError(f"terraform show -json failed: {result.stderr.strip()}")

        if not result.stdout.strip():
            raise PlanLoadError("terraform show -json produced no output")

        return parse_plan_json(result.stdout, source="terraform show -json")
