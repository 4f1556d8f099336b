"""Tests for terraform_tools module."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from plangraph.terraform_tools import (
    PlanLoadError,
    TerraformToolsRunner,
    load_plan_document,
    parse_plan_json,
    validate_plan_document,
)


class TestValidatePlanDocument:
    """Tests for validate_plan_document."""

    def test_minimal_document(self):
        assert validate_plan_document({}) == {}

    def test_non_dict_rejected(self):
        for value in ([], "plan", None, 3):
            with pytest.raises(PlanLoadError):
                validate_plan_document(value)

    def test_resource_changes_must_be_list(self):
        with pytest.raises(PlanLoadError, match="resource_changes"):
            validate_plan_document({"resource_changes": {}})

    def test_change_needs_address(self):
        with pytest.raises(PlanLoadError, match=r"resource_changes\[1\]"):
            validate_plan_document({"resource_changes": [{"address": "a.b"}, {"type": "x"}]})

    def test_configuration_must_be_object(self):
        with pytest.raises(PlanLoadError, match="configuration"):
            validate_plan_document({"configuration": []})


class TestParsePlanJson:
    """Tests for parse_plan_json."""

    def test_invalid_json(self):
        with pytest.raises(PlanLoadError, match="invalid JSON"):
            parse_plan_json("{not json")

    def test_valid(self):
        assert parse_plan_json('{"terraform_version": "1.7.5"}') == {"terraform_version": "1.7.5"}


class TestLoadPlanDocument:
    """Tests for load_plan_document."""

    def test_load(self, plan_file, s3_plan):
        assert load_plan_document(plan_file) == s3_plan

    def test_missing_file(self, tmp_path):
        with pytest.raises(PlanLoadError, match="not found"):
            load_plan_document(tmp_path / "missing.json")

    def test_invalid_content(self, tmp_path):
        path = tmp_path / "plan.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(PlanLoadError, match="expected a JSON object"):
            load_plan_document(path)


class TestTerraformToolsRunner:
    """Tests for TerraformToolsRunner class."""

    def test_check_terraform_available_found(self):
        """Test terraform is found in PATH."""
        with patch("shutil.which", return_value="/usr/bin/terraform"):
            runner = TerraformToolsRunner(Path("/tmp"))
            assert runner.check_terraform_available() is True

    def test_check_terraform_available_not_found(self):
        """Test terraform is not found in PATH."""
        with patch("shutil.which", return_value=None):
            runner = TerraformToolsRunner(Path("/tmp"))
            assert runner.check_terraform_available() is False

    def test_check_initialized_true(self, tmp_path):
        """Test terraform is initialized."""
        (tmp_path / ".terraform").mkdir()
        assert TerraformToolsRunner(tmp_path).check_initialized() is True

    def test_check_initialized_false(self, tmp_path):
        """Test terraform is not initialized."""
        assert TerraformToolsRunner(tmp_path).check_initialized() is False

    def test_run_show_json_without_terraform(self, tmp_path):
        """Test a missing CLI raises PlanLoadError."""
        with patch("shutil.which", return_value=None):
            with pytest.raises(PlanLoadError, match="not found"):
                TerraformToolsRunner(tmp_path).run_show_json("plan.tfplan")

    def test_run_show_json_success(self, tmp_path, s3_plan):
        """Test terraform output is parsed into a plan document."""
        completed = MagicMock(returncode=0, stdout=json.dumps(s3_plan), stderr="")
        with patch("shutil.which", return_value="/usr/bin/terraform"), \
                patch("subprocess.run", return_value=completed) as run:
            plan = TerraformToolsRunner(tmp_path).run_show_json("plan.tfplan")

        assert plan == s3_plan
        args, kwargs = run.call_args
        assert args[0] == ["terraform", "show", "-json", "plan.tfplan"]
        assert kwargs["cwd"] == tmp_path

    def test_run_show_json_failure(self, tmp_path):
        completed = MagicMock(returncode=1, stdout="", stderr="Error: no plan")
        with patch("shutil.which", return_value="/usr/bin/terraform"), \
                patch("subprocess.run", return_value=completed):
            with pytest.raises(PlanLoadError, match="no plan"):
                TerraformToolsRunner(tmp_path).run_show_json("plan.tfplan")

    def test_run_show_json_empty_output(self, tmp_path):
        completed = MagicMock(returncode=0, stdout="  \n", stderr="")
        with patch("shutil.which", return_value="/usr/bin/terraform"), \
                patch("subprocess.run", return_value=completed):
            with pytest.raises(PlanLoadError, match="no output"):
                TerraformToolsRunner(tmp_path).run_show_json()

    def test_run_show_json_timeout(self, tmp_path):
        with patch("shutil.which", return_value="/usr/bin/terraform"), \
                patch("subprocess.run", side_effect=subprocess.TimeoutExpired("terraform", 120)):
            with pytest.raises(PlanLoadError, match="timed out"):
                TerraformToolsRunner(tmp_path).run_show_json("plan.tfplan")
