"""Data describing the execution of a deployment step and its results."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


class Status(Enum):
    """Outcome of a step execution."""

    FAIL = "fail"
    SUCCESS = "success"

    def __str__(self) -> str:
        return self.value


class RegionDeployType(Enum):
    """Whether a step is deployed to the primary region or to regional ones."""

    PRIMARY = "primary"
    REGIONAL = "regional"

    def __str__(self) -> str:
        return self.value

    def __format__(self, spec: str) -> str:
        return format(self.value, spec)


@dataclass
class Account:
    """A cloud account a step may refer to."""

    id: str = ""
    creds_id: str = ""
    csp: str = ""
    account_owner_label: str = ""


def _default_logger() -> logging.Logger:
    return logging.getLogger("runiac")


@dataclass
class StepExecution:
    """Everything a stepper needs to run one step in one region."""

    region_deploy_type: RegionDeployType = RegionDeployType.PRIMARY
    region: str = ""
    region_group: str = ""
    step_name: str = ""
    project: str = ""
    track_name: str = ""
    account_id: str = ""
    target_account_id: str = ""
    dir: str = ""
    dry_run: bool = False
    self_destroy: bool = False
    deployment_ring: str = ""
    environment: str = ""
    namespace: str = ""
    app_version: str = ""
    max_retries: int = 0
    max_test_retries: int = 0
    optional_step_params: dict[str, str] = field(default_factory=dict)
    core_accounts: dict[str, Account] = field(default_factory=dict)
    default_step_output_variables: dict[str, dict[str, str]] = field(default_factory=dict)
    logger: LoggerLike = field(default_factory=_default_logger)


@dataclass
class StepOutput:
    """Result of deploying or destroying a step."""

    region_deploy_type: RegionDeployType = RegionDeployType.PRIMARY
    region: str = ""
    step_name: str = ""
    status: Status = Status.FAIL
    err: BaseException | None = None
    output_variables: dict[str, Any] = field(default_factory=dict)


@dataclass
class StepTestOutput:
    """Result of running a step's tests."""

    stream_output: str = ""
    err: BaseException | None = None