import json
import logging

import pytest

from runiac.backend import (
    BackendType,
    Plan,
    parse_plan,
    parse_tf_backend,
    state_file_name,
    string_to_backend_type,
)
from runiac.execution import RegionDeployType

LOGGER = logging.getLogger("test.backend")


def _write(tmp_path, text):
    path = tmp_path / "testbackend.tf"
    path.write_text(text)
    return str(path)


def test_parse_s3_without_key(tmp_path):
    path = _write(tmp_path, '\n\tterraform {\n\t  backend "s3" {}\n\t}\n')
    result = parse_tf_backend(LOGGER, path)
    assert result.type is BackendType.S3
    assert result.key == ""


def test_parse_s3_with_key(tmp_path):
    path = _write(
        tmp_path,
        '\n\tterraform {\n\t  backend "s3" {\n\t    key = "bedrock-enduser-iam.tfstate"\t\n\t  }\n\t}\n',
    )
    result = parse_tf_backend(LOGGER, path)
    assert result.type is BackendType.S3
    assert result.key == "bedrock-enduser-iam.tfstate"


def test_parse_s3_with_malformed_key(tmp_path):
    path = _write(
        tmp_path,
        '\n\tterraform {\n\t  backend "s3" {\n\t    key="bedrock-enduser-iam.tfstate"\t\n\t  }\n\t}\n',
    )
    result = parse_tf_backend(LOGGER, path)
    assert result.type is BackendType.S3
    assert result.key == "bedrock-enduser-iam.tfstate"


def test_parse_local(tmp_path):
    path = _write(tmp_path, '\n\tterraform {\n\t  backend "local" {}\n\t}\n')
    result = parse_tf_backend(LOGGER, path)
    assert result.type is BackendType.LOCAL
    assert result.key == ""


def test_parse_role_arn(tmp_path):
    path = _write(
        tmp_path,
        '\n\tterraform {\n\t  backend "s3" {\n'
        '\t\tkey         = "/aws/core/logging/${var.runiac_deployment_ring}-stub.tfstate"\n'
        '\t\trole_arn    = "stubrolearn"\n\t  }\n\t}\n',
    )
    result = parse_tf_backend(LOGGER, path)
    assert result.type is BackendType.S3
    assert result.assume_role.role_arn == "stubrolearn"
    assert result.key == "/aws/core/logging/${var.runiac_deployment_ring}-stub.tfstate"


def test_parse_buckets_by_type(tmp_path):
    s3 = parse_tf_backend(
        LOGGER, _write(tmp_path, 'backend "s3" {\n bucket = "b1"\n prefix = "p1"\n}\n')
    )
    assert s3.s3_bucket == "b1"
    assert s3.gcs_bucket == ""
    assert s3.gcs_prefix == ""

    gcs = parse_tf_backend(
        LOGGER, _write(tmp_path, 'backend "gcs" {\n bucket = "b2"\n prefix = "p2"\n}\n')
    )
    assert gcs.gcs_bucket == "b2"
    assert gcs.gcs_prefix == "p2"
    assert gcs.s3_bucket == ""


def test_parse_azure_fields(tmp_path):
    path = _write(
        tmp_path,
        'backend "azurerm" {\n resource_group_name = "rg-things"\n'
        ' storage_account_name = "tfstate"\n}\n',
    )
    result = parse_tf_backend(LOGGER, path)
    assert result.type is BackendType.AZURERM
    assert result.azu_resource_group_name == "rg-things"
    assert result.azu_storage_account_name == "tfstate"


def test_parse_local_path(tmp_path):
    path = _write(tmp_path, 'backend "local" {\n path = "state/terraform.tfstate"\n}\n')
    assert parse_tf_backend(LOGGER, path).path == "state/terraform.tfstate"


def test_missing_file_is_local(tmp_path):
    result = parse_tf_backend(LOGGER, str(tmp_path / "absent.tf"))
    assert result.type is BackendType.LOCAL


def test_unknown_backend_raises(tmp_path):
    path = _write(tmp_path, 'terraform {\n backend "consul" {}\n}\n')
    with pytest.raises(ValueError):
        parse_tf_backend(LOGGER, path)


def test_no_backend_block_raises(tmp_path):
    path = _write(tmp_path, "terraform {}\n")
    with pytest.raises(ValueError):
        parse_tf_backend(LOGGER, path)


@pytest.mark.parametrize(
    "backend, expected",
    [(BackendType.S3, "s3"), (BackendType.LOCAL, "local")],
)
def test_backend_type_to_string(backend, expected):
    assert str(backend) == expected


@pytest.mark.parametrize(
    "name, expected",
    [("s3", BackendType.S3), ("local", BackendType.LOCAL), ("gcs", BackendType.GCS)],
)
def test_string_to_backend_type(name, expected):
    assert string_to_backend_type(name) is expected


def test_string_to_backend_type_unknown():
    with pytest.raises(ValueError):
        string_to_backend_type("doesnotexist")


@pytest.mark.parametrize(
    "namespace, region, region_type, expected",
    [
        ("", "us-east-1", RegionDeployType.PRIMARY, "stub"),
        ("ns", "us-east-1", RegionDeployType.PRIMARY, "ns-stub"),
        ("", "us-west-2", RegionDeployType.PRIMARY, "stub/primary-us-west-2"),
        ("", "us-east-1", RegionDeployType.REGIONAL, "stub/regional-us-east-1"),
        ("ns", "eu-west-1", RegionDeployType.REGIONAL, "ns-stub/regional-eu-west-1"),
    ],
)
def test_state_file_name(namespace, region, region_type, expected):
    assert state_file_name("stub", namespace, "ring", "env", region, region_type) == expected


def test_parse_plan():
    text = json.dumps(
        {
            "format_version": "1.0",
            "terraform_version": "1.5.0",
            "resource_changes": [
                {
                    "address": "aws_s3_bucket.logs",
                    "mode": "managed",
                    "type": "aws_s3_bucket",
                    "name": "logs",
                    "change": {"actions": ["delete", "create"], "before": {"a": 1}},
                }
            ],
            "output_changes": {"id": {"actions": ["no-op"]}},
        }
    )
    plan = parse_plan(text)
    assert plan.format_version == "1.0"
    assert plan.terraform_version == "1.5.0"
    assert len(plan.resource_changes) == 1
    change = plan.resource_changes[0]
    assert change.address == "aws_s3_bucket.logs"
    assert change.type == "aws_s3_bucket"
    assert change.name == "logs"
    assert change.change.actions == ["delete", "create"]
    assert change.change.before == {"a": 1}
    assert change.change.after is None
    assert plan.output_changes["id"].actions == ["no-op"]


def test_parse_plan_empty_object():
    assert parse_plan("{}") == Plan()


def test_parse_plan_rejects_non_object():
    with pytest.raises(ValueError):
        parse_plan("[1, 2]")
    with pytest.raises(ValueError):
        parse_plan("not json")