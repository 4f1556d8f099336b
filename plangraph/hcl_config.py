"""
HCL Configuration Loader

Builds a plan-style configuration tree (``configuration.root_module``) from
Terraform source files. Used when a plan document carries no configuration
block, e.g. JSON produced from state rather than from a saved plan.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import hcl2
from lark.exceptions import UnexpectedInput, UnexpectedToken

logger = logging.getLogger(__name__)

INTERPOLATION = re.compile(r"\$\{(.*?)\}", re.DOTALL)
QUOTED_LITERAL = re.compile(r'"[^"]*"')
TRAVERSAL = re.compile(r"(?<![\w.\-])([A-Za-z][\w\-]*(?:\.[A-Za-z_][\w\-]*)+)")

# Arguments that are not attribute expressions
META_ARGUMENTS = frozenset({"depends_on", "lifecycle", "provider"})

# Traversal roots that never name a resource or module
IGNORED_ROOTS = frozenset({"each", "count", "path", "self", "terraform"})


def expression_references(value: Any) -> List[str]:
    """Find references in the interpolations of an HCL value.

    Both the full traversal and the referenced object are returned, matching
    what terraform reports: ``${aws_s3_bucket.logs.arn}`` yields
    ``aws_s3_bucket.logs.arn`` and ``aws_s3_bucket.logs``.
    """
    refs: List[str] = []
    for text in _strings(value):
        for inner in INTERPOLATION.findall(text):
            inner = QUOTED_LITERAL.sub("", inner)
            for match in TRAVERSAL.finditer(inner):
                _add_reference(match.group(1), refs)
    return refs


def _add_reference(traversal: str, refs: List[str]) -> None:
    parts = traversal.split(".")
    if parts[0] in IGNORED_ROOTS:
        return

    refs.append(traversal)
    if parts[0] == "data":
        base_len = 3
    elif parts[0] in ("var", "local"):
        base_len = len(parts)
    else:
        base_len = 2
    if len(parts) > base_len:
        refs.append(".".join(parts[:base_len]))


def _strings(value: Any):
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for child in value.values():
            yield from _strings(child)
    elif isinstance(value, list):
        for child in value:
            yield from _strings(child)


def _unwrap(expression: Any) -> str:
    """``${aws_s3_bucket.logs}`` -> ``aws_s3_bucket.logs``."""
    text = str(expression).strip()
    if text.startswith("${") and text.endswith("}"):
        text = text[2:-1]
    return text.strip().strip('"')


def _first_block(config: Any) -> Dict[str, Any]:
    # HCL2 can return lists for block bodies
    if isinstance(config, list):
        config = config[0] if config else {}
    return config if isinstance(config, dict) else {}


class HCLConfigurationLoader:
    """Reads ``*.tf`` files into a configuration tree."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def load(self) -> Dict[str, Any]:
        """Configuration tree of the root module.

        Raises:
            ValueError: If the directory does not exist
        """
        if not self.directory.is_dir():
            raise ValueError(f"Directory does not exist: {self.directory}")
        return self._load_module(self.directory.resolve(), set())

    def _load_module(self, directory: Path, visiting: Set[Path]) -> Dict[str, Any]:
        module: Dict[str, Any] = {"resources": [], "module_calls": {}}
        visiting = visiting | {directory}

        tf_files = sorted(directory.glob("*.tf"))
        if not tf_files:
            logger.warning("No .tf files found in %s", directory)

        for tf_file in tf_files:
            content = self._parse_file(tf_file)
            if content is None:
                continue
            module["resources"].extend(self.resources_from_content(content))
            for name, source in self.module_sources(content).items():
                module["module_calls"][name] = {
                    "source": source,
                    "module": self._load_call(directory, source, visiting),
                }

        logger.debug(
            "Loaded %d resources and %d module calls from %s",
            len(module["resources"]), len(module["module_calls"]), directory,
        )
        return module

    def _load_call(self, directory: Path, source: str, visiting: Set[Path]) -> Dict[str, Any]:
        if not (source.startswith("./") or source.startswith("../")):
            logger.debug("Skipping non-local module source %s", source)
            return {}

        module_dir = (directory / source).resolve()
        if not module_dir.is_dir():
            logger.warning("Module path not found: %s", module_dir)
            return {}
        if module_dir in visiting:
            logger.warning("Module cycle through %s", module_dir)
            return {}
        return self._load_module(module_dir, visiting)

    def _parse_file(self, file_path: Path) -> Optional[Dict[str, Any]]:
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return hcl2.load(f)
        except OSError as e:
            logger.warning("Could not read %s: %s", file_path, e)
        except UnicodeDecodeError as e:
            logger.warning("Could not decode %s: %s", file_path, e)
        except (UnexpectedInput, UnexpectedToken) as e:
            logger.warning("Could not parse HCL in %s: %s", file_path, e)
        return None

    @staticmethod
    def resources_from_content(content: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Configuration resources declared in one parsed file."""
        resources = []
        for block_kind, mode in (("resource", "managed"), ("data", "data")):
            for block in content.get(block_kind, []):
                for resource_type, declared in block.items():
                    if not isinstance(declared, dict):
                        continue
                    for resource_name, config in declared.items():
                        if resource_name.startswith("__"):
                            continue
                        config = _first_block(config)
                        address = f"{resource_type}.{resource_name}"
                        if mode == "data":
                            address = f"data.{address}"

                        expressions = {}
                        for attr, value in config.items():
                            if attr in META_ARGUMENTS:
                                continue
                            refs = expression_references(value)
                            if refs:
                                expressions[attr] = {"references": refs}

                        resources.append({
                            "address": address,
                            "mode": mode,
                            "type": resource_type,
                            "name": resource_name,
                            "depends_on": [_unwrap(d) for d in config.get("depends_on") or []],
                            "expressions": expressions,
                        })
        return resources

    @staticmethod
    def module_sources(content: Dict[str, Any]) -> Dict[str, str]:
        """Module call name -> source for one parsed file."""
        sources = {}
        for block in content.get("module", []):
            for module_name, config in block.items():
                if module_name.startswith("__"):
                    continue
                config = _first_block(config)
                sources[module_name] = _unwrap(config.get("source", ""))
        return sources


def load_configuration(directory: Union[str, Path]) -> Dict[str, Any]:
    """Root module configuration for the Terraform sources in ``directory``."""
    return HCLConfigurationLoader(directory).load()
