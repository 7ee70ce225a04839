from __future__ import annotations

import json
from pathlib import Path

import pytest

from spec_approvals.__main__ import main, parse_args


@pytest.fixture(autouse=True)
def _run_from_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, object]:
    code = main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


def _request(capsys: pytest.CaptureFixture[str], project: Path, category_name: str = "foo") -> str:
    code, payload = _run(
        capsys,
        "request",
        "--project-path",
        str(project),
        "--title",
        "Review design",
        "--file-path",
        f"specs/{category_name}/design.md",
        "--type",
        "document",
        "--category",
        "spec",
        "--category-name",
        category_name,
    )
    assert code == 0
    return payload["data"]["approvalId"]  # type: ignore[index]


def test_parse_args_defaults() -> None:
    args = parse_args(["status", "approval_1"])
    assert args.command == "status"
    assert args.approval_id == "approval_1"
    assert args.project_path is None
    assert args.log_level == "WARNING"


def test_parse_args_rejects_pending_as_a_decision() -> None:
    with pytest.raises(SystemExit):
        parse_args(["respond", "approval_1", "--status", "pending"])


def test_review_round_trip(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    approval_id = _request(capsys, project)

    code, listed = _run(capsys, "list", "--project-path", str(project), "--pending")
    assert code == 0
    assert [item["id"] for item in listed] == [approval_id]  # type: ignore[union-attr]

    code, responded = _run(
        capsys,
        "respond",
        approval_id,
        "--project-path",
        str(project),
        "--status",
        "needs-revision",
        "--response",
        "Tighten the retry section",
        "--comment",
        "add a sequence diagram",
        "--selection-comment",
        "retries forever",
        "bound this",
    )
    assert code == 0
    assert responded["status"] == "needs-revision"  # type: ignore[index]
    assert responded["comments"] == [  # type: ignore[index]
        {"type": "general", "comment": "add a sequence diagram"},
        {"type": "selection", "comment": "bound this", "selectedText": "retries forever"},
    ]

    code, status = _run(capsys, "status", approval_id, "--project-path", str(project))
    assert code == 0
    assert status["data"]["isCompleted"] is False  # type: ignore[index]
    assert '  Comment 2 on "retries forever...": bound this' in status["nextSteps"]  # type: ignore[index]

    code, blocked = _run(capsys, "delete", approval_id, "--project-path", str(project))
    assert code == 1
    assert blocked["data"]["currentStatus"] == "needs-revision"  # type: ignore[index]

    code, listed = _run(capsys, "list", "--project-path", str(project), "--pending")
    assert code == 0
    assert listed == []

    code, removed = _run(capsys, "remove", approval_id, "--project-path", str(project))
    assert code == 0
    assert removed == {"approvalId": approval_id, "removed": True}
    assert not list((project / ".spec-workflow" / "approvals" / "foo").glob("*.json"))


def test_wait_exit_code_reflects_decision(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    approved = _request(capsys, project, "alpha")
    rejected = _request(capsys, project, "beta")
    assert _run(capsys, "respond", approved, "--project-path", str(project), "--status", "approved")[0] == 0
    assert _run(capsys, "respond", rejected, "--project-path", str(project), "--status", "rejected")[0] == 0

    code, record = _run(capsys, "wait", approved, "--project-path", str(project), "--timeout", "1")
    assert code == 0
    assert record["status"] == "approved"  # type: ignore[index]

    code, record = _run(capsys, "wait", rejected, "--project-path", str(project), "--timeout", "1")
    assert code == 1
    assert record["status"] == "rejected"  # type: ignore[index]


def test_wait_times_out(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    approval_id = _request(capsys, project)
    code, payload = _run(capsys, "wait", approval_id, "--project-path", str(project), "--timeout", "0")
    assert code == 1
    assert payload is None


def test_list_filters_by_category(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    foo = _request(capsys, project, "foo")
    _request(capsys, project, "bar")
    code, listed = _run(
        capsys, "list", "--project-path", str(project), "--category", "spec", "--category-name", "foo"
    )
    assert code == 0
    assert [item["id"] for item in listed] == [foo]  # type: ignore[union-attr]


def test_project_path_from_environment(
    project: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    approval_id = _request(capsys, project)
    monkeypatch.setenv("SPEC_APPROVALS_PROJECT_PATH", str(project))
    code, status = _run(capsys, "status", approval_id)
    assert code == 0
    assert status["data"]["approvalId"] == approval_id  # type: ignore[index]


def test_store_commands_require_a_project_path(capsys: pytest.CaptureFixture[str]) -> None:
    code, payload = _run(capsys, "list")
    assert code == 1
    assert payload is None


def test_respond_to_unknown_approval_fails(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, payload = _run(
        capsys, "respond", "approval_0_missing", "--project-path", str(project), "--status", "approved"
    )
    assert code == 1
    assert payload is None


def test_invalid_configuration_exits_non_zero(
    capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("SPEC_APPROVALS_POLL_INTERVAL_SECONDS", "soon")
    code, payload = _run(capsys, "list")
    assert code == 1
    assert payload is None


def test_request_failure_prints_structured_response(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, payload = _run(capsys, "request", "--project-path", str(project), "--title", "Review design")
    assert code == 1
    assert payload["data"]["missingFields"] == ["filePath", "type", "category", "categoryName"]  # type: ignore[index]


def test_respond_rejects_selection_comment_without_text(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    approval_id = _request(capsys, project)
    code, payload = _run(
        capsys,
        "respond",
        approval_id,
        "--project-path",
        str(project),
        "--status",
        "needs-revision",
        "--selection-comment",
        "",
        "anchor me",
    )
    assert code == 1
    assert payload is None

    code, status = _run(capsys, "status", approval_id, "--project-path", str(project))
    assert status["data"]["status"] == "pending"  # type: ignore[index]
