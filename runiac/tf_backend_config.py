"""Resolution of a step's Terraform backend configuration."""

from __future__ import annotations

import dataclasses
import os
import re
from collections.abc import Callable
from typing import Any

from runiac.backend import TerraformBackend
from runiac.execution import LoggerLike, StepExecution
from runiac.tf_commands import keys_string

BackendParser = Callable[[LoggerLike, str], TerraformBackend]

_CORE_ACCOUNT_PREFIX = "${var.core_account_ids_map."
_CORE_ACCOUNT_REF = re.compile(r"\$\{var\.core_account_ids_map\..*?\}")


def interpolate_string(execution: StepExecution, text: str) -> str:
    """Replace runiac variable references in ``text`` with the execution's values."""
    replacements = (
        ("${var.runiac_deployment_ring}", execution.deployment_ring),
        ("${var.runiac_target_account_id}", execution.target_account_id),
        ("${var.runiac_step}", execution.step_name),
        ("${var.runiac_region_deploy_type}", str(execution.region_deploy_type)),
        ("${var.runiac_region}", execution.region),
        ("${var.runiac_environment}", execution.environment),
    )
    for reference, value in replacements:
        text = text.replace(reference, value)

    if "${var.core_account_ids_map" not in text:
        return text

    logger = execution.logger
    for match in _CORE_ACCOUNT_REF.findall(text):
        parts = match.split(_CORE_ACCOUNT_PREFIX)
        if len(parts) != 2:
            logger.error(
                "Error translating core_account_ids_map map for regex match: %s. "
                "Unexpected split on core_account_ids_map.",
                match,
            )
            continue
        name_parts = parts[1].split("}")
        if len(name_parts) != 2:
            logger.error(
                "Error translating core_account_ids_map map for regex match: %s. "
                "Unexpected split on closing }.",
                match,
            )
            continue
        name = name_parts[0]
        account = execution.core_accounts.get(name)
        if account is None:
            logger.error(
                "Did not find %s in the core accounts map. Core accounts map keys are: %s",
                name,
                keys_string(execution.core_accounts),
            )
            continue
        text = text.replace(match, account.id)
    return text


def _override(
    execution: StepExecution, config: dict[str, Any], key: str, declared: str, label: str
) -> None:
    if not declared:
        return
    execution.logger.debug("Declared %s: %s", label, declared)
    resolved = interpolate_string(execution, declared)
    if resolved != declared:
        config[key] = resolved
    execution.logger.debug("Resolved %s: %s", label, resolved)


def get_backend_config(execution: StepExecution, parser: BackendParser) -> TerraformBackend:
    """Parse the step's backend.tf and compute the backend config overrides.

    The key is always passed on once interpolated; the other settings only when
    interpolation changed what was declared.
    """
    declared = parser(execution.logger, os.path.join(execution.dir, "backend.tf"))
    execution.logger.debug("Parsed Backend Type: %s", declared.type)
    execution.logger.debug("Parsed Backend Key: %s", declared.key)

    config: dict[str, Any] = {}

    if declared.key:
        config["key"] = interpolate_string(execution, declared.key)

    role_arn = declared.assume_role.role_arn
    if role_arn:
        execution.logger.debug("Declared S3RoleArn: %s", role_arn)
        resolved = interpolate_string(execution, role_arn)
        if resolved != role_arn:
            config["assume_role"] = f'{{"role_arn"="{resolved}"}}'
        execution.logger.debug("Resolved S3RoleArn: %s", resolved)

    _override(execution, config, "bucket", declared.s3_bucket, "S3 bucket")
    _override(execution, config, "bucket", declared.gcs_bucket, "GCS bucket")
    _override(execution, config, "prefix", declared.gcs_prefix, "GCS prefix")
    _override(
        execution,
        config,
        "resource_group_name",
        declared.azu_resource_group_name,
        "resource group name",
    )
    _override(
        execution,
        config,
        "storage_account_name",
        declared.azu_storage_account_name,
        "storage account name",
    )
    _override(execution, config, "path", declared.path, "path")

    return dataclasses.replace(declared, config=config)