"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from helpers import GOOGLE, make_change


@pytest.fixture
def s3_plan() -> dict:
    """Bucket plus a bucket policy that depends on it."""
    return {
        "format_version": "1.2",
        "terraform_version": "1.7.5",
        "resource_changes": [
            make_change("aws_s3_bucket.logs", "aws_s3_bucket", "logs", ["create"],
                        after={"bucket": "logs"}),
            make_change("aws_s3_bucket_policy.logs_policy", "aws_s3_bucket_policy",
                        "logs_policy", ["create"]),
        ],
        "configuration": {
            "root_module": {
                "resources": [
                    {
                        "address": "aws_s3_bucket.logs",
                        "mode": "managed",
                        "type": "aws_s3_bucket",
                        "name": "logs",
                        "expressions": {"bucket": {"references": ["var.bucket_name"]}},
                    },
                    {
                        "address": "aws_s3_bucket_policy.logs_policy",
                        "mode": "managed",
                        "type": "aws_s3_bucket_policy",
                        "name": "logs_policy",
                        "depends_on": ["aws_s3_bucket.logs"],
                    },
                ]
            }
        },
    }


@pytest.fixture
def mixed_plan() -> dict:
    """Plan with several providers, services, modules and actions."""
    return {
        "format_version": "1.2",
        "terraform_version": "1.7.5",
        "resource_changes": [
            make_change("aws_vpc.main", "aws_vpc", "main", ["no-op"]),
            make_change("aws_subnet.a", "aws_subnet", "a", ["create"]),
            make_change("aws_subnet.b", "aws_subnet", "b", ["create"]),
            make_change("aws_subnet.c", "aws_subnet", "c", ["create"]),
            make_change("aws_instance.web", "aws_instance", "web", ["delete", "create"]),
            make_change("data.aws_ami.ubuntu", "aws_ami", "ubuntu", ["read"], mode="data"),
            make_change("module.db.aws_db_instance.main", "aws_db_instance", "main", ["update"],
                        module_address="module.db"),
            make_change("google_cloud_run_v2_job.etl", "google_cloud_run_v2_job", "etl",
                        ["create"], provider=GOOGLE),
            make_change("google_storage_bucket.data", "google_storage_bucket", "data",
                        ["delete"], provider=GOOGLE),
        ],
        "configuration": {
            "root_module": {
                "resources": [
                    {"address": "aws_subnet.a", "expressions": {
                        "vpc_id": {"references": ["aws_vpc.main.id", "aws_vpc.main"]}}},
                    {"address": "aws_subnet.b", "expressions": {
                        "vpc_id": {"references": ["aws_vpc.main.id", "aws_vpc.main"]}}},
                    {"address": "aws_instance.web", "expressions": {
                        "ami": {"references": ["data.aws_ami.ubuntu.id", "data.aws_ami.ubuntu"]},
                        "subnet_id": {"references": ["aws_subnet.missing"]}}},
                    {"address": "google_cloud_run_v2_job.etl",
                     "depends_on": ["google_storage_bucket.data"]},
                ],
                "module_calls": {
                    "db": {
                        "source": "./modules/db",
                        "module": {
                            "resources": [
                                {"address": "aws_db_instance.main",
                                 "depends_on": ["aws_subnet.c"]},
                            ]
                        },
                    }
                },
            }
        },
    }


@pytest.fixture
def plan_file(tmp_path, s3_plan) -> Path:
    """s3_plan written to disk."""
    path = tmp_path / "plan.json"
    path.write_text(json.dumps(s3_plan), encoding="utf-8")
    return path
