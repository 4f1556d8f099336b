#!/usr/bin/env python3
"""
plangraph - Terraform Plan Graph Layout

Turns a Terraform plan into a provider -> service -> resource graph with
explicit node positions and dependency edges, written as JSON for a renderer.

Usage:
    # From a plan exported with `terraform show -json plan.tfplan > plan.json`
    plangraph plan.json

    # From a binary plan file (runs terraform show -json)
    plangraph plan.tfplan --plan-file -d ./infrastructure

    # Fill in dependencies from .tf sources when the JSON has no configuration
    plangraph state.json -d ./infrastructure -o graph.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .details import filter_resources
from .hcl_config import load_configuration
from .layout import LayoutConfig, LayoutEngine
from .parser import ActionType, PlanIntegrityError, parse_plan
from .terraform_tools import PlanLoadError, TerraformToolsRunner, load_plan_document


def _load_plan(args: argparse.Namespace) -> Dict[str, Any]:
    if args.plan_file:
        runner = TerraformToolsRunner(args.terraform_dir or Path(args.plan).parent)
        return runner.run_show_json(Path(args.plan).resolve())
    return load_plan_document(args.plan)


def _attach_configuration(plan: Dict[str, Any], terraform_dir: Optional[str], verbose: bool) -> None:
    """Fill in ``configuration.root_module`` from .tf sources if the plan has none."""
    configuration = plan.get("configuration") or {}
    if configuration.get("root_module") or not terraform_dir:
        return

    try:
        root_module = load_configuration(terraform_dir)
    except ValueError as e:
        raise PlanLoadError(str(e)) from e

    if verbose:
        print(f"Loaded configuration from {terraform_dir}: {len(root_module['resources'])} resources")
    plan["configuration"] = dict(configuration, root_module=root_module)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lay out a Terraform plan as a provider/service/resource graph.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    terraform plan -out plan.tfplan
    terraform show -json plan.tfplan > plan.json
    plangraph plan.json -o graph.json

    # Only show resources that will be deleted
    plangraph plan.json --action delete
        """,
    )

    parser.add_argument("plan", help="Plan JSON file (or binary plan with --plan-file)")

    parser.add_argument(
        "-o",
        "--output",
        default="plangraph.json",
        help="Output file path (JSON). Use '-' for stdout. Default: plangraph.json",
    )

    parser.add_argument(
        "-d",
        "--terraform-dir",
        default=None,
        help="Terraform directory. Used to run terraform with --plan-file and to read "
        "dependencies from .tf files when the plan has no configuration block.",
    )

    parser.add_argument(
        "--plan-file",
        action="store_true",
        help="Treat PLAN as a binary plan file and convert it with 'terraform show -json'.",
    )

    parser.add_argument(
        "--columns",
        type=int,
        default=LayoutConfig.resource_columns,
        help="Resource columns per service group. Default: %(default)s",
    )

    parser.add_argument(
        "--action",
        choices=[a.value for a in ActionType],
        default=None,
        help="Only lay out resources with this primary action. The summary covers the whole plan.",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = LayoutConfig(resource_columns=args.columns)

        plan = _load_plan(args)
        _attach_configuration(plan, args.terraform_dir, args.verbose)

        parsed = parse_plan(plan)
        resources = parsed.resources
        if args.action:
            resources = filter_resources(resources, action=ActionType(args.action))

        layout = LayoutEngine(config).layout_resources(resources)

        output = {
            "terraform_version": parsed.terraform_version,
            "summary": parsed.summary.as_dict(),
            "layout": layout.to_dict(),
        }
        content = json.dumps(output, indent=2)

        if args.output == "-":
            print(content)
        else:
            output_path = Path(args.output)
            output_path.write_text(content, encoding="utf-8")
            print(f"Graph written: {output_path.absolute()}")
            print("\nSummary:")
            for key, value in parsed.summary.as_dict().items():
                print(f"  {key}: {value}")
            print(f"  Nodes: {len(layout.nodes)}")
            print(f"  Edges: {len(layout.edges)}")

    except (PlanLoadError, PlanIntegrityError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
