import json
from unittest import mock

import pytest

from runiac.errors import CommandError
from runiac.execution import Status, StepExecution
from runiac.tf_commands import Terraform
from runiac.tf_stepper import TerraformStepper, execute_terraform

PLAN_JSON = json.dumps(
    {
        "format_version": "1.0",
        "resource_changes": [
            {
                "address": "aws_s3_bucket.b",
                "type": "aws_s3_bucket",
                "name": "b",
                "change": {"actions": ["create"]},
            }
        ],
    }
)
OUTPUTS_JSON = json.dumps({"vpc_id": {"value": "vpc-123"}})


class FakeRunner:
    def __init__(self, failures=(), outputs=None):
        self.commands = []
        self.failures = set(failures)
        self.outputs = {"show": PLAN_JSON, "output": OUTPUTS_JSON, **(outputs or {})}

    def __call__(self, command, stream):
        self.commands.append(command)
        if command.command == "terraform":
            name = command.args[0]
        else:
            name = command.command
        if name in self.failures:
            raise CommandError(command.command, "failure output", 1)
        return self.outputs.get(name, "")

    def subcommands(self):
        return [c.args[0] for c in self.commands if c.command == "terraform"]

    def find(self, name):
        return [c for c in self.commands if c.command == "terraform" and c.args[0] == name]


@pytest.fixture
def execution(tmp_path):
    return StepExecution(
        region="us-east-1",
        step_name="step",
        project="proj",
        track_name="track",
        account_id="12",
        dir=str(tmp_path),
        environment="env",
        max_retries=1,
        max_test_retries=1,
    )


def test_execute_step_runs_full_sequence(execution):
    runner = FakeRunner()
    output = TerraformStepper(Terraform(runner)).execute_step(execution)
    assert output.status is Status.SUCCESS
    assert output.err is None
    assert output.output_variables == {"vpc_id": "vpc-123"}
    assert runner.subcommands() == ["init", "workspace", "plan", "show", "apply", "output"]
    assert runner.find("workspace")[0].args[:3] == ["workspace", "select", "primary-us-east-1"]


def test_output_copies_execution_identity(execution):
    output = execute_terraform(execution, False, Terraform(FakeRunner()))
    assert output.region == execution.region
    assert output.step_name == execution.step_name
    assert output.region_deploy_type is execution.region_deploy_type


def test_namespace_prefixes_workspace(execution):
    execution.namespace = "ns"
    runner = FakeRunner()
    execute_terraform(execution, False, Terraform(runner))
    assert runner.find("workspace")[0].args[2] == "ns-primary-us-east-1"


def test_dry_run_skips_apply(execution):
    execution.dry_run = True
    runner = FakeRunner()
    output = execute_terraform(execution, False, Terraform(runner))
    assert output.status is Status.SUCCESS
    assert "apply" not in runner.subcommands()


def test_destroy_plans_destroy(execution):
    runner = FakeRunner()
    TerraformStepper(Terraform(runner)).execute_step_destroy(execution)
    assert "-destroy" in runner.find("plan")[0].args


def test_plan_receives_variables(execution):
    runner = FakeRunner()
    execute_terraform(execution, False, Terraform(runner))
    plan = runner.find("plan")[0]
    assert plan.env["TF_VAR_runiac_environment"] == "env"
    assert "runiac_region=us-east-1" in plan.args
    assert "runiac_account_id=12" in plan.args
    assert "-out=stepprimaryus-east-1tfplan" in plan.args


def test_init_failure_fails_step(execution):
    runner = FakeRunner(failures={"init"})
    with mock.patch("time.sleep"):
        output = execute_terraform(execution, False, Terraform(runner))
    assert output.status is Status.FAIL
    assert isinstance(output.err, CommandError)
    assert "plan" not in runner.subcommands()


def test_plan_failure_fails_step(execution):
    runner = FakeRunner(failures={"plan"})
    output = execute_terraform(execution, False, Terraform(runner))
    assert output.status is Status.FAIL
    assert isinstance(output.err, CommandError)
    assert "apply" not in runner.subcommands()


def test_plan_failure_is_retried(execution):
    execution.max_retries = 2
    runner = FakeRunner(failures={"plan"})
    with mock.patch("time.sleep"):
        output = execute_terraform(execution, False, Terraform(runner))
    assert output.status is Status.FAIL
    assert len(runner.find("plan")) == 2


def test_output_failure_still_succeeds(execution):
    runner = FakeRunner(failures={"output"})
    output = execute_terraform(execution, False, Terraform(runner))
    assert output.status is Status.SUCCESS
    assert isinstance(output.err, CommandError)


def test_pre_execute_copies_deploy_overrides(execution):
    calls = []
    stepper = TerraformStepper(Terraform(FakeRunner()), lambda s, d: calls.append(d))
    execution.deployment_ring = "test"
    result = stepper.pre_execute(execution)
    assert result is execution
    assert [c.rsplit("/", 1)[1] for c in calls] == ["override.tf", "ring_test_override.tf"]


def test_pre_execute_copies_destroy_overrides_when_self_destroying(execution):
    calls = []
    stepper = TerraformStepper(Terraform(FakeRunner()), lambda s, d: calls.append(d))
    execution.deployment_ring = "test"
    execution.self_destroy = True
    stepper.pre_execute(execution)
    assert [c.rsplit("/", 1)[1] for c in calls][2:] == [
        "destroy_override.tf",
        "destroy_ring_test_override.tf",
    ]


def test_execute_step_tests_runs_gotestsum(execution, tmp_path, monkeypatch):
    junit = tmp_path / "junit"
    monkeypatch.setattr("runiac.tf_stepper._JUNIT_DIR", str(junit))
    runner = FakeRunner(outputs={"gotestsum": "PASS"})
    result = TerraformStepper(Terraform(runner)).execute_step_tests(execution)
    assert result.stream_output == "PASS"
    assert result.err is None
    assert junit.is_dir()
    command = runner.commands[0]
    assert command.command == "gotestsum"
    assert command.working_dir == f"{execution.dir}/tests"
    assert command.env["TF_VAR_runiac_region"] == "us-east-1"
    assert f"{junit}/proj-track-step-primary-us-east-1.xml" in command.args


def test_execute_step_tests_reports_failure(execution, tmp_path, monkeypatch):
    monkeypatch.setattr("runiac.tf_stepper._JUNIT_DIR", str(tmp_path / "junit"))
    runner = FakeRunner(failures={"gotestsum"})
    result = TerraformStepper(Terraform(runner)).execute_step_tests(execution)
    assert isinstance(result.err, CommandError)
    assert result.stream_output == "failure output"