"""Terraform variables for a step and copying of override files."""

from __future__ import annotations

import os
import shutil
import stat
from collections.abc import Callable, Mapping
from typing import Any

from runiac.execution import LoggerLike, StepExecution

__all__ = [
    "copy_file",
    "handle_deploy_overrides",
    "handle_destroy_overrides",
    "handle_override",
    "keys_string",
    "terraform_cli_vars",
    "terraform_env_vars",
]

Copier = Callable[[str, str], None]


def keys_string(mapping: Mapping[str, Any]) -> str:
    """Return the keys of ``mapping`` as ``[a, b, c]``."""
    return "[" + ", ".join(mapping) + "]"


def terraform_cli_vars(execution: StepExecution) -> dict[str, Any]:
    """Return the variables passed to Terraform on the command line."""
    return {
        "runiac_account_id": execution.account_id,
        "runiac_region": execution.region,
    }


def terraform_env_vars(execution: StepExecution) -> dict[str, str]:
    """Return the variables passed to Terraform through the environment."""
    result = dict(execution.optional_step_params or {})
    if execution.core_accounts:
        pairs = ",".join(
            f'"{name}":"{account.id}"' for name, account in execution.core_accounts.items()
        )
        result["runiac_core_account_ids_map"] = "{" + pairs + "}"
    result["runiac_app_version"] = execution.app_version
    result["runiac_namespace"] = execution.namespace
    result["runiac_environment"] = execution.environment
    return result


def copy_file(src: str, dst: str) -> None:
    """Copy ``src`` to ``dst``, hard-linking where possible.

    Nothing is done when both name the same file. Non-regular files raise
    ValueError; a missing source raises FileNotFoundError.
    """
    src_stat = os.stat(src)
    if not stat.S_ISREG(src_stat.st_mode):
        raise ValueError(
            f"CopyFile: non-regular source file {os.path.basename(src)} "
            f"({stat.filemode(src_stat.st_mode)!r})"
        )
    try:
        dst_stat = os.stat(dst)
    except FileNotFoundError:
        pass
    else:
        if not stat.S_ISREG(dst_stat.st_mode):
            raise ValueError(
                f"CopyFile: non-regular destination file {os.path.basename(dst)} "
                f"({stat.filemode(dst_stat.st_mode)!r})"
            )
        if os.path.samestat(src_stat, dst_stat):
            return

    try:
        os.link(src, dst)
        return
    except OSError:
        pass

    with open(src, "rb") as source, open(dst, "wb") as target:
        shutil.copyfileobj(source, target)
        target.flush()
        os.fsync(target.fileno())


def handle_override(
    logger: LoggerLike, exec_dir: str, file_name: str, copier: Copier = copy_file
) -> None:
    """Copy ``override/<file_name>`` into ``exec_dir`` if it exists."""
    src = os.path.join(exec_dir, "override", file_name)
    dst = os.path.join(exec_dir, file_name)
    logger.info("Attempting to copy %s to %s", src, dst)
    try:
        copier(src, dst)
    except FileNotFoundError:
        return
    except (OSError, ValueError) as err:
        logger.error("Overrides were not successfully set targeting %s: %s", file_name, err)


def handle_deploy_overrides(
    logger: LoggerLike, exec_dir: str, deployment_ring: str, copier: Copier = copy_file
) -> None:
    """Copy the deploy override files into the execution directory."""
    handle_override(logger, exec_dir, "override.tf", copier)
    handle_override(logger, exec_dir, f"ring_{deployment_ring.lower()}_override.tf", copier)


def handle_destroy_overrides(
    logger: LoggerLike, exec_dir: str, deployment_ring: str, copier: Copier = copy_file
) -> None:
    """Copy the destroy override files into the execution directory."""
    handle_override(logger, exec_dir, "destroy_override.tf", copier)
    handle_override(
        logger, exec_dir, f"destroy_ring_{deployment_ring.lower()}_override.tf", copier
    )