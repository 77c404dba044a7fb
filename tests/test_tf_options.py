import dataclasses
import logging

from runiac.tf_options import TerraformOptions


def test_defaults_are_empty():
    opts = TerraformOptions()
    assert opts.terraform_binary == ""
    assert opts.vars == {}
    assert opts.var_files == []
    assert opts.targets == []
    assert opts.env_vars == {}
    assert opts.max_retries == 0
    assert opts.no_color is False


def test_mutable_fields_are_not_shared():
    first = TerraformOptions()
    second = TerraformOptions()
    first.env_vars["CHECKPOINT_DISABLE"] = "true"
    first.vars["a"] = 1
    first.targets.append("module.x")
    assert second.env_vars == {}
    assert second.vars == {}
    assert second.targets == []


def test_default_logger_is_usable():
    opts = TerraformOptions()
    assert isinstance(opts.logger, logging.Logger)
    assert opts.logger.name.startswith("runiac")


def test_replace_keeps_other_fields():
    opts = TerraformOptions(terraform_dir="/tracks/step", no_color=True, max_retries=3)
    changed = dataclasses.replace(opts, max_retries=1)
    assert changed.terraform_dir == "/tracks/step"
    assert changed.no_color is True
    assert changed.max_retries == 1
    assert opts.max_retries == 3