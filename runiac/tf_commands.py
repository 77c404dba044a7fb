"""Terraform commands run through a command runner."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from runiac.errors import CommandError
from runiac.hcl import format_args, format_backend_config_as_args
from runiac.shell import Command, LoggerLike, Runner
from runiac.shell import run as _run_command
from runiac.tf_options import TerraformOptions
from runiac.tf_output import output_to_string, parse_outputs

TERRAFORM_PLAN_CHANGES_PRESENT_EXIT_CODE = 2
DEFAULT_SUCCESS_EXIT_CODE = 0
DEFAULT_ERROR_EXIT_CODE = 1

_INIT_ATTEMPTS = 3
_INIT_RETRY_DELAY = 10.0

_T = TypeVar("_T")


def common_options(
    options: TerraformOptions, args: Iterable[str]
) -> tuple[TerraformOptions, list[str]]:
    """Apply settings shared by every Terraform command to ``options`` and ``args``."""
    full_args = list(args)
    if options.no_color and "-no-color" not in full_args:
        full_args.append("-no-color")
    if options.plugin_cache_dir:
        if options.env_vars is None:
            options.env_vars = {}
        options.env_vars["TF_PLUGIN_CACHE_DIR"] = options.plugin_cache_dir
    if not options.terraform_binary:
        options.terraform_binary = "terraform"
    return options, full_args


def keys_string(mapping: Mapping[str, Any]) -> str:
    """Return the keys of ``mapping`` as ``[a, b, c]``."""
    return "[" + ", ".join(mapping) + "]"


def _with_retries(
    description: str,
    attempts: int,
    delay: float,
    logger: LoggerLike,
    action: Callable[[int], _T],
) -> _T:
    last_error: Exception | None = None
    for attempt in range(max(1, attempts)):
        try:
            return action(attempt)
        except Exception as err:  # every failure is retried, as with any tool error
            last_error = err
            logger.warning("%s failed on attempt %d: %s", description, attempt + 1, err)
            if attempt + 1 < attempts:
                time.sleep(delay)
    assert last_error is not None
    raise last_error


class Terraform:
    """Runs Terraform subcommands through a command runner."""

    def __init__(self, runner: Runner) -> None:
        self._runner = runner

    def run(self, stream: bool, options: TerraformOptions, *args: str) -> str:
        """Run terraform with ``args`` and return its output."""
        options, full_args = common_options(options, args)
        command = Command(
            command=options.terraform_binary,
            args=full_args,
            working_dir=options.terraform_dir,
            env=options.env_vars,
            output_max_line_size=options.output_max_line_size,
            non_interactive=True,
            sensitive_args=False,
            logger=options.logger,
        )
        options.logger.debug(
            "Executing Command with following Env Vars set: %s", keys_string(command.env)
        )
        return _run_command(self._runner, command, stream)

    def exit_code(self, options: TerraformOptions, *args: str) -> int:
        """Run terraform with ``args`` and return its exit code."""
        options, full_args = common_options(options, args)
        command = Command(
            command=options.terraform_binary,
            args=full_args,
            working_dir=options.terraform_dir,
            env=options.env_vars,
            output_max_line_size=options.output_max_line_size,
            non_interactive=True,
            sensitive_args=True,
            logger=options.logger,
        )
        try:
            _run_command(self._runner, command, False)
        except CommandError as err:
            return err.exit_code
        return DEFAULT_SUCCESS_EXIT_CODE

    def version(self, options: TerraformOptions) -> str:
        """Return the output of ``terraform version``."""
        return self.run(False, options, *format_args(options, "version"))

    def show(self, options: TerraformOptions, tfplan: str) -> str:
        """Return the JSON rendering of a saved plan."""
        return self.run(False, options, *format_args(options, "show", "-json", tfplan))

    def plan(self, options: TerraformOptions, tfplan: str, destroy: bool) -> str:
        """Write a plan to ``tfplan``; a destroy plan when ``destroy`` is true."""
        args = ["plan", f"-out={tfplan}", "-input=false", "-no-color"]
        if destroy:
            args.append("-destroy")
        return self.run(True, options, *format_args(options, *args))

    def output_all(self, options: TerraformOptions) -> dict[str, Any]:
        """Return the values of every output."""
        return self.output_for_keys(options, None)

    def output_for_keys(
        self, options: TerraformOptions, keys: Iterable[str] | None
    ) -> dict[str, Any]:
        """Return the values of the outputs named by ``keys``, or of all when ``None``."""
        text = self.run(False, options, "output", "-no-color", "-json")
        return parse_outputs(text, keys)

    def output_to_string(self, value: Any) -> str:
        """Render an output value as a string."""
        return output_to_string(value)

    def init(self, options: TerraformOptions) -> str:
        """Run ``terraform init`` with the backend configuration, retrying failures."""
        backend_args = format_backend_config_as_args(options.backend_config)
        args = ["init", "-force-copy", *backend_args]
        options.logger.info("BackendConfig: %s", " ".join(backend_args))
        try:
            return _with_retries(
                "terraform init",
                _INIT_ATTEMPTS,
                _INIT_RETRY_DELAY,
                options.logger,
                lambda attempt: self.run(True, options, *args),
            )
        except Exception as err:
            options.logger.error("Error attempting retryable action: %s", err)
            raise

    def apply(self, options: TerraformOptions, tfplan: str) -> str:
        """Apply a saved plan."""
        args = ["apply", "-input=false", "-no-color", "-auto-approve=true", tfplan]
        return self.run(True, options, *format_args(options, *args))

    def workspace_select(self, options: TerraformOptions, workspace: str) -> str:
        """Select ``workspace``, creating it first when it does not exist."""
        select = format_args(options, "workspace", "select", workspace)
        try:
            return self.run(True, options, *select)
        except CommandError as err:
            missing = f'workspace "{workspace}" doesn\'t exist'.lower()
            if missing not in err.output.lower():
                raise
        self.run(True, options, *format_args(options, "workspace", "new", workspace))
        return self.run(True, options, *select)


def initialize(logger: LoggerLike, terraform: Terraform) -> str | None:
    """Log the Terraform binary version; return it, or ``None`` if it cannot be read."""
    logger.info("Initializing runiac Terraform plugin")
    options = TerraformOptions(
        terraform_dir=".",
        env_vars={"CHECKPOINT_DISABLE": "true"},
        logger=logging.LoggerAdapter(logger, {"terraform": "version"}),
        no_color=True,
        max_retries=1,
        time_between_retries=0.0,
    )
    try:
        version = terraform.version(options)
    except Exception as err:
        options.logger.error("Error running terraform version: %s", err)
        return None
    options.logger.info("Binary: %s", version)
    return version