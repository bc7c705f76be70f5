from unittest.mock import MagicMock

import pytest

from github_merge_lock.action import main, run
from github_merge_lock.rulesets import LockController, LockOptions, RulesetStatusResult


@pytest.fixture
def fake_controller():
    return MagicMock(spec=LockController)


@pytest.fixture
def output_file(tmp_path):
    return tmp_path / "github_output"


def _env(output_file, **overrides):
    env = {
        "INPUT_GITHUB_TOKEN": "token",
        "INPUT_OWNER": "octo",
        "INPUT_REPO": "app",
        "INPUT_BRANCH": "main",
        "INPUT_RULESET_NAME": "",
        "GITHUB_OUTPUT": str(output_file),
    }
    env.update(overrides)
    return env


def _outputs(output_file):
    outputs = {}
    lines = iter(output_file.read_text(encoding="utf-8").splitlines())
    for line in lines:
        name, delimiter = line.split("<<", 1)
        value = []
        for body in lines:
            if body == delimiter:
                break
            value.append(body)
        outputs[name] = "\n".join(value)
    return outputs


def test_status_outputs_when_found(fake_controller, output_file, capsys):
    fake_controller.get_status.return_value = RulesetStatusResult(
        locked=True, found=True, name="github-merge-lock:main", ruleset_id=42, enforcement="active"
    )

    assert run("status", _env(output_file), lambda settings: fake_controller) == 0

    assert _outputs(output_file) == {
        "locked": "true",
        "found": "true",
        "ruleset_id": "42",
        "enforcement": "active",
        "ruleset_name": "github-merge-lock:main",
    }
    assert "Status: LOCKED" in capsys.readouterr().out


def test_status_outputs_when_missing(fake_controller, output_file):
    fake_controller.get_status.return_value = RulesetStatusResult(
        locked=False, found=False, name="github-merge-lock:main"
    )

    run("status", _env(output_file), lambda settings: fake_controller)

    outputs = _outputs(output_file)
    assert outputs["locked"] == "false"
    assert outputs["ruleset_id"] == ""
    assert outputs["enforcement"] == ""


def test_lock_outputs(fake_controller, output_file, capsys):
    fake_controller.lock.return_value = True

    assert run("lock", _env(output_file), lambda settings: fake_controller) == 0

    assert _outputs(output_file) == {"changed": "true", "ruleset_name": "github-merge-lock:main"}
    assert capsys.readouterr().out.strip() == (
        'Locked branch "main" in octo/app (ruleset: github-merge-lock:main)'
    )


def test_unlock_with_custom_name(fake_controller, output_file, capsys):
    fake_controller.unlock.return_value = False

    run("unlock", _env(output_file, INPUT_RULESET_NAME=" freeze "), lambda settings: fake_controller)

    fake_controller.unlock.assert_called_once_with(
        LockOptions(owner="octo", repo="app", branch="main", ruleset_name="freeze")
    )
    assert _outputs(output_file) == {"changed": "false", "ruleset_name": "freeze"}
    assert "already unlocked" in capsys.readouterr().out


def test_token_input_overrides_environment(fake_controller, output_file):
    fake_controller.lock.return_value = False
    seen = []

    def factory(settings):
        seen.append(settings)
        return fake_controller

    run("lock", _env(output_file, GITHUB_TOKEN="env-token"), factory)

    assert seen[0].token == "token"


def test_repository_from_workflow_context(fake_controller, output_file):
    fake_controller.get_status.return_value = RulesetStatusResult(
        locked=False, found=False, name="github-merge-lock:main"
    )
    env = _env(
        output_file,
        INPUT_OWNER="",
        INPUT_REPO="",
        GITHUB_REPOSITORY_OWNER="env-owner",
        GITHUB_REPOSITORY="env-owner/env-repo",
    )

    run("status", env, lambda settings: fake_controller)

    fake_controller.get_status.assert_called_once_with(
        LockOptions(owner="env-owner", repo="env-repo", branch="main", ruleset_name=None)
    )


def test_missing_repository_context_fails(fake_controller, output_file, capsys):
    env = _env(output_file, INPUT_OWNER="", INPUT_REPO="")

    assert run("status", env, lambda settings: fake_controller) == 1

    assert capsys.readouterr().out.strip() == (
        "::error::owner/repo is required. Set inputs or GITHUB_REPOSITORY env."
    )
    fake_controller.get_status.assert_not_called()


def test_missing_token_fails(fake_controller, output_file, capsys):
    env = _env(output_file)
    del env["INPUT_GITHUB_TOKEN"]

    assert run("lock", env, lambda settings: fake_controller) == 1

    assert capsys.readouterr().out.strip() == "::error::github_token is required."


def test_outputs_without_github_output_file(fake_controller, output_file):
    fake_controller.lock.return_value = True
    env = _env(output_file)
    del env["GITHUB_OUTPUT"]

    assert run("lock", env, lambda settings: fake_controller) == 0
    assert not output_file.exists()


def test_main_rejects_unknown_command(capsys):
    assert main(["merge"]) == 2
    assert "usage:" in capsys.readouterr().err


def test_multiline_value_stays_in_one_output(fake_controller, output_file):
    fake_controller.lock.return_value = True
    env = _env(output_file, INPUT_RULESET_NAME="freeze\nchanged=false\nlocked=true")

    run("lock", env, lambda settings: fake_controller)

    assert _outputs(output_file) == {
        "changed": "true",
        "ruleset_name": "freeze\nchanged=false\nlocked=true",
    }
    assert output_file.read_text(encoding="utf-8").startswith("changed<<ghadelimiter_")
