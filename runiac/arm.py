"""Deploying and destroying steps described as Azure Resource Manager templates."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from runiac.execution import (
    LoggerLike,
    Status,
    StepExecution,
    StepOutput,
    StepTestOutput,
)
from runiac.shell import Command, Runner
from runiac.shell import run as _run_command

_LINKED_DEPLOYMENT_TYPE = "Microsoft.Resources/deployments"
_TEMP_TEMPLATE = ".temp/main.json"


def _default_logger() -> logging.Logger:
    return logging.getLogger("runiac.arm")


@dataclass
class AzureOptions:
    """Options controlling an Azure CLI invocation."""

    azure_cli_binary: str = "az"
    azure_cli_dir: str = "."
    env_vars: dict[str, str] = field(default_factory=dict)
    output_max_line_size: int = 0
    logger: LoggerLike = field(default_factory=_default_logger)


class AzureCLI:
    """Runs Azure CLI subcommands through a command runner."""

    def __init__(self, runner: Runner) -> None:
        self._runner = runner

    def run(self, stream: bool, options: AzureOptions, *args: str) -> str:
        """Run the Azure CLI with ``args`` and return its output."""
        command = Command(
            command=options.azure_cli_binary,
            args=list(args),
            working_dir=options.azure_cli_dir,
            env=options.env_vars,
            output_max_line_size=options.output_max_line_size,
            non_interactive=True,
            sensitive_args=False,
            logger=options.logger,
        )
        return _run_command(self._runner, command, stream)

    def resource_delete(self, options: AzureOptions, ids: list[str]) -> str:
        """Delete the resources with the given ids."""
        return self.run(True, options, "resource", "delete", "--ids", *ids)

    def sub_create(
        self,
        options: AzureOptions,
        deployment_name: str,
        account_id: str,
        location: str,
        file: str,
    ) -> str:
        """Create a subscription-level deployment from a template file."""
        return self.run(
            True,
            options,
            "deployment",
            "sub",
            "create",
            "--name",
            deployment_name,
            "--location",
            location,
            "--template-file",
            file,
            "--subscription",
            account_id,
        )

    def sub_delete(self, options: AzureOptions, deployment_name: str, account_id: str) -> str:
        """Delete the metadata of a subscription-level deployment."""
        return self.run(
            True,
            options,
            "deployment",
            "sub",
            "delete",
            "--name",
            deployment_name,
            "--subscription",
            account_id,
        )

    def sub_show(self, options: AzureOptions, deployment_name: str, account_id: str) -> str:
        """Return the metadata of a subscription-level deployment."""
        return self.run(
            True,
            options,
            "deployment",
            "sub",
            "show",
            "--name",
            deployment_name,
            "--subscription",
            account_id,
        )

    def sub_what_if(
        self,
        options: AzureOptions,
        deployment_name: str,
        account_id: str,
        location: str,
        file: str,
    ) -> str:
        """Preview the changes a subscription-level deployment would make."""
        return self.run(
            True,
            options,
            "deployment",
            "sub",
            "what-if",
            "--name",
            deployment_name,
            "--location",
            location,
            "--template-file",
            file,
            "--subscription",
            account_id,
        )

    def version(self, options: AzureOptions) -> str:
        """Return the output of ``az --version``."""
        return self.run(False, options, "--version")


def deployment_name(execution: StepExecution) -> str:
    """Return the name of the deployment made for a step in a region."""
    return (
        f"runiac-{execution.project}-{execution.track_name}-"
        f"{execution.step_name}-{execution.region}"
    )


def common_options(execution: StepExecution) -> AzureOptions:
    """Return the Azure CLI options shared by every command for a step."""
    return AzureOptions(
        azure_cli_binary="az",
        azure_cli_dir=execution.dir,
        env_vars={},
        logger=execution.logger,
    )


def resource_ids(text: str) -> list[str]:
    """Return the ids of the resources created by a deployment, from its JSON metadata."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("deployment metadata is not a JSON object")
    properties = data.get("properties") or {}
    return [resource.get("id", "") for resource in properties.get("outputResources") or []]


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


def parse_main_template(execution: StepExecution) -> str:
    """Inline linked templates into the step's main.json.

    The result is written to ``.temp/main.json`` inside the step directory, whose
    path relative to that directory is returned. The ``.temp`` directory must not
    exist yet.
    """
    logger = execution.logger
    try:
        os.mkdir(os.path.join(execution.dir, ".temp"), 0o755)
        template = _read_json(os.path.join(execution.dir, "main.json"))
    except (OSError, ValueError) as err:
        logger.error("Unable to read template file: %s", err)
        raise

    if not isinstance(template, dict) or not isinstance(template.get("resources"), list):
        raise ValueError("template has no list of resources")

    for resource in template["resources"]:
        if not isinstance(resource, dict) or resource.get("type") != _LINKED_DEPLOYMENT_TYPE:
            continue
        properties = resource.get("properties")
        if not isinstance(properties, dict):
            continue
        link = properties.get("_templateLink")
        if not isinstance(link, dict):
            continue
        local_uri = link.get("localUri")
        if not isinstance(local_uri, str):
            raise ValueError("template link has no localUri")
        try:
            linked = _read_json(os.path.join(execution.dir, local_uri))
        except (OSError, ValueError) as err:
            logger.error("Unable to read linked template %s: %s", local_uri, err)
            raise
        del properties["_templateLink"]
        properties["template"] = linked

    result = json.dumps(template, separators=(",", ":"), sort_keys=True)
    with open(os.path.join(execution.dir, _TEMP_TEMPLATE), "w", encoding="utf-8") as handle:
        handle.write(result)
    return _TEMP_TEMPLATE


def initialize(logger: LoggerLike, cli: AzureCLI) -> str | None:
    """Log the Azure CLI version; return it, or ``None`` if it cannot be read."""
    logger.info("Initializing runiac ARM plugin")
    logger.warning(
        "The ARM runner is currently in preview and is subject to change in future runiac releases"
    )
    options = AzureOptions(
        azure_cli_binary="az",
        azure_cli_dir=".",
        env_vars={},
        logger=logging.LoggerAdapter(logger, {"ArmPlugin": "info"}),
    )
    try:
        version = cli.version(options)
    except Exception:
        logger.warning("Unable to print az CLI version")
        return None
    logger.info("Binary: %s", version)
    return version


class ArmStepper:
    """Runs steps whose infrastructure is described in ARM templates."""

    def __init__(self, cli: AzureCLI) -> None:
        self._cli = cli

    def pre_execute(self, execution: StepExecution) -> StepExecution:
        """Return the execution unchanged; ARM steps need no preparation."""
        return execution

    @staticmethod
    def _new_output(execution: StepExecution) -> StepOutput:
        return StepOutput(
            region_deploy_type=execution.region_deploy_type,
            region=execution.region,
            step_name=execution.step_name,
            status=Status.FAIL,
        )

    def execute_step(self, execution: StepExecution) -> StepOutput:
        """Preview and then deploy the step's template."""
        output = self._new_output(execution)
        name = deployment_name(execution)
        options = common_options(execution)
        logger = options.logger

        try:
            template_file = parse_main_template(execution)
        except Exception as err:
            logger.error("Unable to parse template for step execution: %s", err)
            output.err = err
            return output

        try:
            self._cli.sub_what_if(
                options, name, execution.account_id, execution.region, template_file
            )
        except Exception as err:
            logger.error("Failed to plan template deployment: %s", err)
            output.err = err
            return output

        if execution.dry_run:
            logger.info("---------- Skipping create, this is a dry run ---------- ")
        else:
            try:
                self._cli.sub_create(
                    options, name, execution.account_id, execution.region, template_file
                )
            except Exception as err:
                logger.error("Failed to deploy template: %s", err)
                output.err = err
                return output

        output.status = Status.SUCCESS
        return output

    def execute_step_destroy(self, execution: StepExecution) -> StepOutput:
        """Delete the resources of the step's last deployment and its metadata."""
        output = self._new_output(execution)
        name = deployment_name(execution)
        options = common_options(execution)
        logger = options.logger

        steps = (
            ("Failed to find last template deployment", lambda: self._cli.sub_show(
                options, name, execution.account_id)),
        )
        try:
            shown = steps[0][1]()
        except Exception as err:
            logger.error("%s: %s", steps[0][0], err)
            output.err = err
            return output

        try:
            ids = resource_ids(shown)
        except ValueError as err:
            logger.error("Failed to read last template deployment: %s", err)
            output.err = err
            return output

        try:
            self._cli.resource_delete(options, ids)
        except Exception as err:
            logger.error("Failed to delete resources: %s", err)
            output.err = err
            return output

        try:
            self._cli.sub_delete(options, name, execution.account_id)
        except Exception as err:
            logger.error("Failed to delete deployment metadata: %s", err)
            output.err = err
            return output

        output.status = Status.SUCCESS
        return output

    def execute_step_tests(self, execution: StepExecution) -> StepTestOutput:
        """Return an empty test result; ARM steps carry no tests."""
        return StepTestOutput()