"""Deploying, destroying and testing steps with Terraform."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from typing import Any

from runiac.backend import parse_plan, parse_tf_backend
from runiac.errors import CommandError
from runiac.execution import (
    LoggerLike,
    Status,
    StepExecution,
    StepOutput,
    StepTestOutput,
)
from runiac.tf_backend_config import get_backend_config
from runiac.tf_commands import Terraform
from runiac.tf_options import TerraformOptions
from runiac.tf_vars import (
    Copier,
    copy_file,
    handle_deploy_overrides,
    handle_destroy_overrides,
    terraform_cli_vars,
    terraform_env_vars,
)

_JUNIT_DIR = "/output/junit"
_PLAN_RETRY_DELAY = 10.0
_TEST_RETRY_DELAY = 20.0


def _with_fields(logger: LoggerLike, **fields: Any) -> logging.LoggerAdapter:
    if isinstance(logger, logging.LoggerAdapter):
        return logging.LoggerAdapter(logger.logger, {**(logger.extra or {}), **fields})
    return logging.LoggerAdapter(logger, fields)


def _retry(
    description: str,
    attempts: int,
    delay: float,
    logger: LoggerLike,
    action: Callable[[int], None],
) -> Exception | None:
    """Run ``action`` until it succeeds; return the last error if it never did."""
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            action(attempt)
            return None
        except Exception as err:
            logger.warning("%s failed on attempt %d: %s", description, attempt + 1, err)
            if attempt + 1 >= attempts:
                return err
            time.sleep(delay)
    return None


def _common_options(execution: StepExecution) -> TerraformOptions:
    return TerraformOptions(
        terraform_dir=execution.dir,
        env_vars={},
        logger=execution.logger,
        no_color=True,
        retryable_terraform_errors={".*": "General Terraform error occurred."},
        max_retries=execution.max_retries,
        time_between_retries=5.0,
    )


def _plan_and_apply(
    execution: StepExecution,
    destroy: bool,
    terraformer: Terraform,
    logger: LoggerLike,
) -> tuple[dict[str, Any], Exception | None]:
    tfplan = f"{execution.step_name}{execution.region_deploy_type}{execution.region}tfplan"

    plan_options = _common_options(execution)
    plan_options.logger = _with_fields(logger, terraform="plan")
    for key, value in terraform_env_vars(execution).items():
        plan_options.logger.debug("Adding parameter to TF_VARs: %s", key)
        plan_options.env_vars[f"TF_VAR_{key}"] = value
    plan_options.vars = terraform_cli_vars(execution)

    try:
        terraformer.plan(plan_options, tfplan, destroy)
    except Exception as err:
        plan_options.logger.error("Error running terraform plan: %s", err)
        raise

    base_options = _common_options(execution)
    base_options.logger = _with_fields(logger, terraform="show")
    try:
        shown = terraformer.show(base_options, tfplan)
    except Exception as err:
        detail = err.output if isinstance(err, CommandError) else ""
        base_options.logger.error("Error during terraform show: %s\n%s", err, detail)
        raise

    try:
        plan = parse_plan(shown)
    except ValueError as err:
        plan_options.logger.error("Error unmarshalling terraform show: %s", err)
        raise

    for change in plan.resource_changes:
        actions = "[" + " ".join(change.change.actions) + "]"
        plan_options.logger.info(
            "%s, %s, %s: %s", change.address, change.type, change.name, actions
        )

    if execution.dry_run:
        plan_options.logger.info("---------- Skipping apply, this is a dry run ---------- ")
    else:
        base_options.logger = _with_fields(logger, terraform="apply")
        try:
            terraformer.apply(base_options, tfplan)
        except Exception as err:
            base_options.logger.error("Error running terraform apply: %s", err)
            raise

    output_logger = _with_fields(logger, terraform="output")
    try:
        return terraformer.output_all(plan_options), None
    except Exception as err:
        output_logger.error("Error running terraform output: %s", err)
        return {}, err


def execute_terraform(
    execution: StepExecution, destroy: bool, terraformer: Terraform
) -> StepOutput:
    """Init, select the workspace, plan, apply and read outputs for a step."""
    output = StepOutput(
        region_deploy_type=execution.region_deploy_type,
        region=execution.region,
        step_name=execution.step_name,
        status=Status.FAIL,
    )

    options = _common_options(execution)
    options.backend_config = get_backend_config(execution, parse_tf_backend).config
    options.logger = _with_fields(options.logger, terraform="init")
    try:
        terraformer.init(options)
    except Exception as err:
        options.logger.error("Error during terraform init: %s", err)
        output.err = err
        return output

    options.logger = _with_fields(options.logger, terraform="workspace")
    workspace = f"{execution.region_deploy_type}-{execution.region}"
    if execution.namespace:
        workspace = f"{execution.namespace}-{workspace}"
    try:
        terraformer.workspace_select(options, workspace)
    except Exception as err:
        options.logger.error("Error during terraform workspace select: %s", err)
        output.err = err
        return output

    def attempt(number: int) -> None:
        retry_logger = _with_fields(options.logger, retryCount=number)
        variables, output_error = _plan_and_apply(execution, destroy, terraformer, retry_logger)
        output.output_variables = variables
        output.err = output_error
        output.status = Status.SUCCESS

    error = _retry(
        "terraform plan and apply",
        options.max_retries,
        _PLAN_RETRY_DELAY,
        options.logger,
        attempt,
    )
    if error is not None:
        output.err = error
    return output


class TerraformStepper:
    """Runs steps whose infrastructure is described in Terraform."""

    def __init__(self, terraformer: Terraform, copier: Copier = copy_file) -> None:
        self._terraformer = terraformer
        self._copier = copier

    def pre_execute(self, execution: StepExecution) -> StepExecution:
        """Put override files in place before the step runs."""
        handle_deploy_overrides(
            execution.logger, execution.dir, execution.deployment_ring, self._copier
        )
        if execution.self_destroy:
            handle_destroy_overrides(
                execution.logger, execution.dir, execution.deployment_ring, self._copier
            )
        return execution

    def execute_step(self, execution: StepExecution) -> StepOutput:
        """Deploy the step."""
        return execute_terraform(execution, False, self._terraformer)

    def execute_step_destroy(self, execution: StepExecution) -> StepOutput:
        """Destroy the step."""
        return execute_terraform(execution, True, self._terraformer)

    def execute_step_tests(self, execution: StepExecution) -> StepTestOutput:
        """Run the step's compiled tests, writing a JUnit report."""
        handle_deploy_overrides(
            execution.logger, execution.dir, execution.deployment_ring, self._copier
        )
        output = StepTestOutput()

        env_vars = {f"TF_VAR_{k}": v for k, v in terraform_env_vars(execution).items()}
        env_vars.update(
            {f"TF_VAR_{k}": str(v) for k, v in terraform_cli_vars(execution).items()}
        )
        test_dir = f"{execution.dir}/tests"

        try:
            os.makedirs(_JUNIT_DIR, exist_ok=True)
        except OSError as err:
            execution.logger.warning(
                "Failed to create output directory for test results: %s", err
            )

        deploy_id = (
            f"{execution.project}-{execution.track_name}-{execution.step_name}-"
            f"{execution.region_deploy_type}-{execution.region}"
        )

        def attempt(number: int) -> None:
            options = TerraformOptions(
                terraform_binary="gotestsum",
                terraform_dir=test_dir,
                env_vars=dict(env_vars),
                logger=_with_fields(execution.logger, retryCount=number),
            )
            output.err = None
            try:
                output.stream_output = self._terraformer.run(
                    True,
                    options,
                    "--format",
                    "standard-verbose",
                    "--junitfile",
                    f"{_JUNIT_DIR}/{deploy_id}.xml",
                    "--raw-command",
                    "--",
                    "test2json",
                    "-p",
                    deploy_id,
                    "./tests.test",
                    "-test.v",
                )
            except Exception as err:
                output.stream_output = err.output if isinstance(err, CommandError) else ""
                output.err = err
                raise

        _retry(
            f"execute tests: {test_dir}",
            execution.max_test_retries,
            _TEST_RETRY_DELAY,
            execution.logger,
            attempt,
        )
        return output