"""Tests for the last-run artifact reader."""

import json

import pytest

from cypress_mcp.security import MalformedUpstreamDataError, TraversalError
from cypress_mcp.tools import get_last_run, read_last_run
from cypress_mcp.tools import last_run as last_run_module
from cypress_mcp.tools.last_run import NO_RESULTS_MESSAGE, mask_commands

LOGIN = "cypress/e2e/login.cy.ts"
LOGOUT = "cypress/e2e/auth/logout.spec.js"

RUN = {
    "startedAt": "2026-01-01T00:00:00Z",
    "specs": [
        {
            "spec": LOGIN,
            "stats": {"passes": 1, "failures": 1},
            "tests": [
                {
                    "title": "login > logs in",
                    "state": "passed",
                    "commands": [
                        {"name": "type", "message": "alice-secret-pass"},
                        {"name": "click", "message": "#submit"},
                    ],
                },
                {
                    "title": "login > rejects bad password",
                    "state": "failed",
                    "error": {"message": "expected 200 but got 401, password=hunter22"},
                    "domSnapshotPath": "snapshots/login-rejects.html",
                    "commands": [
                        {"name": "type", "message": "wrong-password"},
                        {"name": "get", "message": "#error"},
                    ],
                },
            ],
        },
        {"spec": LOGOUT, "tests": [{"title": "logs out", "state": "passed"}]},
    ],
}


def _load(text: str) -> dict:
    return json.loads(text)


def test_no_results_yet(project_root):
    """A missing last-run file gives a notice, not an error."""
    assert get_last_run(project_root) == NO_RESULTS_MESSAGE
    assert read_last_run(project_root) is None


def test_full_results(project_root, write_last_run):
    """All specs and tests are returned with their original keys."""
    write_last_run(RUN)
    data = _load(get_last_run(project_root))

    assert data["startedAt"] == "2026-01-01T00:00:00Z"
    assert [s["spec"] for s in data["specs"]] == [LOGIN, LOGOUT]
    login = data["specs"][0]
    assert login["stats"] == {"passes": 1, "failures": 1}
    assert login["tests"][1]["domSnapshotPath"] == "snapshots/login-rejects.html"
    assert "domSnapshotPath" not in login["tests"][0]


def test_sensitive_commands_masked(project_root, write_last_run):
    """Messages of sensitive commands are masked."""
    write_last_run(RUN)
    tests = _load(get_last_run(project_root))["specs"][0]["tests"]

    passed_cmds, failed_cmds = tests[0]["commands"], tests[1]["commands"]
    assert passed_cmds[0] == {"name": "type", "message": "[redacted]"}
    assert passed_cmds[1] == {"name": "click", "message": "#submit"}
    assert failed_cmds[0] == {"name": "type", "message": "[redacted - type]"}
    assert failed_cmds[1] == {"name": "get", "message": "#error"}


def test_tests_without_commands_get_empty_list(project_root, write_last_run):
    """Tests with no recorded commands get an empty list."""
    write_last_run(RUN)
    logout = _load(get_last_run(project_root))["specs"][1]
    assert logout["tests"][0]["commands"] == []


def test_secrets_in_results_redacted(project_root, write_last_run):
    """Secrets in error messages are redacted."""
    write_last_run(RUN)
    text = get_last_run(project_root)
    assert "hunter22" not in text
    assert "password=[redacted]" in text


def test_secrets_in_embedded_json_redacted(project_root, write_last_run):
    """Secrets inside JSON embedded in strings are redacted."""
    body = json.dumps({"token": "abcdef123456"})
    write_last_run({"specs": [{"spec": LOGIN, "tests": [{"title": "t", "state": "failed", "body": body}]}]})

    test = _load(get_last_run(project_root))["specs"][0]["tests"][0]
    assert json.loads(test["body"]) == {"token": "[redacted]"}


def test_failed_only(project_root, write_last_run):
    """failed_only keeps failed tests and drops empty specs."""
    write_last_run(RUN)
    data = _load(get_last_run(project_root, failed_only=True))

    assert [s["spec"] for s in data["specs"]] == [LOGIN]
    assert [t["title"] for t in data["specs"][0]["tests"]] == ["login > rejects bad password"]


def test_failed_only_with_no_failures(project_root, write_last_run):
    """failed_only on a green run returns no specs."""
    write_last_run({"specs": [{"spec": LOGOUT, "tests": [{"title": "x", "state": "passed"}]}]})
    assert _load(get_last_run(project_root, failed_only=True))["specs"] == []


def test_missing_specs_key(project_root, write_last_run):
    """A document without specs is malformed."""
    write_last_run({})
    assert _load(get_last_run(project_root)) == {"specs": []}


# === Hostile artifacts ===


def test_invalid_json(project_root, write_last_run):
    """Invalid JSON is malformed upstream data."""
    write_last_run("{truncated")
    with pytest.raises(MalformedUpstreamDataError, match="invalid JSON"):
        get_last_run(project_root)


@pytest.mark.parametrize(
    "payload",
    [
        [1, 2, 3],
        {"specs": "all of them"},
        {"specs": [{"tests": []}]},
        {"specs": [{"spec": LOGIN, "tests": [{"title": "no state"}]}]},
        {"specs": [{"spec": LOGIN, "tests": "nope"}]},
    ],
)
def test_unexpected_structure(project_root, write_last_run, payload):
    """A document of the wrong shape is malformed upstream data."""
    write_last_run(payload)
    with pytest.raises(MalformedUpstreamDataError, match="unexpected structure"):
        get_last_run(project_root)


def test_oversized_artifact(project_root, write_last_run, monkeypatch):
    """A file over the size ceiling is refused unread."""
    monkeypatch.setattr(last_run_module, "MAX_LAST_RUN_BYTES", 16)
    write_last_run(RUN)
    with pytest.raises(MalformedUpstreamDataError, match="too large"):
        get_last_run(project_root)


def test_symlink_outside_project(project_root, tmp_path):
    """A last-run symlink pointing outside the root is traversal."""
    planted = tmp_path / "planted.json"
    planted.write_text(json.dumps(RUN))
    out = project_root / ".cypress-mcp"
    out.mkdir()
    (out / "last-run.json").symlink_to(planted)

    with pytest.raises(TraversalError, match="last-run.json is a symlink outside"):
        get_last_run(project_root)


# === Helpers ===


def test_find_case(project_root, write_last_run):
    """find_case looks tests up by spec and full title."""
    write_last_run(RUN)
    data = read_last_run(project_root)

    entry, case = data.find_case(LOGIN, "login > rejects bad password")
    assert entry.spec == LOGIN
    assert case.dom_snapshot_path == "snapshots/login-rejects.html"

    entry, case = data.find_case(LOGIN, "missing")
    assert entry is not None
    assert case is None

    assert data.find_case("other.cy.ts", "x") == (None, None)


def test_mask_commands_leaves_odd_entries():
    """Non-dict command entries pass through untouched."""
    test = {"state": "passed", "commands": ["raw string", {"name": "request", "message": "POST /login"}]}
    assert mask_commands(test)["commands"] == [
        "raw string",
        {"name": "request", "message": "[redacted]"},
    ]
