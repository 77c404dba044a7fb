# runiac

`runiac` runs the steps of an infrastructure track. It prepares a step's
working directory, drives either Terraform or Azure Resource Manager (ARM)
templates through their command-line tools, and reports each step's
outcome as a `runiac.execution.StepOutput` (or `StepTestOutput` for tests).

A step is described by a `runiac.execution.StepExecution`: its directory,
region, region deploy type (`RegionDeployType.PRIMARY` or `REGIONAL`),
deployment ring, environment, namespace, core accounts, retry counts and
whether it is a dry run.

## Running commands

The package does not start programs itself. `runiac.tf_commands.Terraform`
and `runiac.arm.AzureCLI` are given a *runner*: a callable that takes a
`runiac.shell.Command` and a flag saying whether output should be streamed,
and returns the command's output as a string. A runner signals failure by
raising `runiac.errors.CommandError` with the output and exit code.

```python
from runiac.errors import CommandError
from runiac.shell import Command
from runiac.tf_commands import Terraform

def runner(command: Command, stream: bool) -> str:
    # execute command.command with command.args in command.working_dir,
    # with command.env set; raise CommandError(...) on failure
    ...

terraform = Terraform(runner)
```

## Terraform steps

`runiac.tf_stepper.TerraformStepper(terraformer, copier=copy_file)`:

- `pre_execute` copies `override.tf` and `ring_<ring>_override.tf` from the
  step's `override/` directory into the step directory, and, when the
  execution has `self_destroy` set, also `destroy_override.tf` and
  `destroy_ring_<ring>_override.tf`. Missing override files are ignored.
- `execute_step` / `execute_step_destroy` read `backend.tf`
  (`runiac.backend.parse_tf_backend`), fill in placeholders such as
  `${var.runiac_deployment_ring}`, `${var.runiac_step}`,
  `${var.runiac_region}`, `${var.runiac_environment}` and
  `${var.core_account_ids_map.<name>}`
  (`runiac.tf_backend_config.get_backend_config`), then run `init`, select
  or create the workspace `[<namespace>-]<region type>-<region>`, and run
  `plan`, `show`, `apply` (skipped on a dry run) and `output`, retrying the
  plan-and-apply sequence up to the execution's `max_retries`.
- Step parameters are passed as `TF_VAR_*` environment variables
  (`runiac.tf_vars.terraform_env_vars`); the account id and region as
  `-var` arguments (`runiac.tf_vars.terraform_cli_vars`).
- `execute_step_tests` runs the step's compiled tests in `<dir>/tests`
  through `gotestsum`, writing a JUnit report under `/output/junit`.

## ARM steps

`runiac.arm.ArmStepper(cli)`:

- `execute_step` inlines linked templates referenced by
  `_templateLink.localUri` into `main.json`, writes the result to
  `.temp/main.json` (`runiac.arm.parse_main_template`; the `.temp`
  directory must not already exist), runs a subscription-level what-if and
  then a create (skipped on a dry run).
- `execute_step_destroy` reads the last deployment, deletes every resource
  it created and then removes the deployment record.
- `execute_step_tests` returns an empty result.

`runiac.arm.initialize` and `runiac.tf_commands.initialize` log the version
of the respective tool.

## Helpers

Terraform argument formatting, in `runiac.hcl`:

```python
from runiac.hcl import format_terraform_args, to_hcl_string

format_terraform_args("-var-file", ["foo.tfvars", "bar.tfvars"])
# ['-var-file', 'foo.tfvars', '-var-file', 'bar.tfvars']

to_hcl_string(["a", "b"], False)
# '["a", "b"]'
```

Output conversion, in `runiac.tf_output`:

```python
from runiac.tf_output import output_to_string

output_to_string(["subnet1", "subnet2"])
# '["subnet1","subnet2"]'
output_to_string("vpcid-123")
# 'vpcid-123'
```

Backend type names, in `runiac.backend`:

```python
from runiac.backend import BackendType, string_to_backend_type

string_to_backend_type("s3") is BackendType.S3
```

An unknown backend name raises `ValueError`.

## Errors

Failures to read Terraform outputs are raised as the exceptions in
`runiac.errors`, for example `OutputKeyNotFound`. A command that exits with
a failure is raised by the runner as `CommandError`. The steppers do not
raise for failed commands; they return a `StepOutput` with status
`Status.FAIL` and the error in its `err` field.

## What this package does not do

- It has no command-line interface and no process runner of its own; the
  caller supplies the runner that executes commands.
- It does not discover tracks or steps, read a project configuration, or
  order steps across regions; it runs one `StepExecution` at a time.

## Requirements

Python 3.10 or later. There are no third-party runtime dependencies.