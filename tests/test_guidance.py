from __future__ import annotations

import pytest

from spec_approvals.guidance import render_comment, request_next_steps, status_message, status_next_steps
from spec_approvals.models import ApprovalStatus, Comment, CommentType


def test_pending_guidance_blocks_and_asks_for_polling() -> None:
    assert status_next_steps(ApprovalStatus.PENDING) == [
        "BLOCKED - Do not proceed",
        "VERBAL APPROVAL NOT ACCEPTED - Use dashboard or VS Code extension only",
        "Approval must be done via dashboard or VS Code extension",
        'Continue polling with approvals action:"status"',
    ]


def test_pending_guidance_ignores_feedback_fields() -> None:
    assert status_next_steps(ApprovalStatus.PENDING, response="early note") == status_next_steps(
        ApprovalStatus.PENDING
    )


def test_approved_guidance_requires_delete_before_continuing() -> None:
    assert status_next_steps(ApprovalStatus.APPROVED) == [
        "APPROVED - Can proceed",
        'Run approvals action:"delete" before continuing',
    ]
    assert status_next_steps(ApprovalStatus.APPROVED, response="LGTM")[-1] == "Response: LGTM"


def test_rejected_guidance_surfaces_reason_and_notes() -> None:
    assert status_next_steps(
        ApprovalStatus.REJECTED,
        response="missing edge cases",
        annotations="see section 4",
    ) == [
        "BLOCKED - REJECTED",
        "Do not proceed",
        "Review feedback and revise",
        "Reason: missing edge cases",
        "Notes: see section 4",
    ]


def test_needs_revision_guidance_enumerates_comments() -> None:
    selected = "x" * 30 + "y" * 50
    assert len(selected) == 80
    steps = status_next_steps(
        ApprovalStatus.NEEDS_REVISION,
        response="Please tighten",
        annotations="minor",
        comments=[
            Comment(type=CommentType.SELECTION, comment="reword this", selected_text=selected),
            Comment(type=CommentType.GENERAL, comment="add a sequence diagram"),
        ],
    )
    assert steps == [
        "BLOCKED - Do not proceed",
        "Update document with feedback",
        "Create NEW approval request",
        "Feedback: Please tighten",
        "Notes: minor",
        "2 comments for targeted fixes:",
        f'  Comment 1 on "{selected[:50]}...": reword this',
        "  Comment 2 (general): add a sequence diagram",
    ]
    assert selected[:51] not in steps[6]


def test_selection_excerpt_is_not_padded_when_short() -> None:
    comment = Comment(type=CommentType.SELECTION, comment="typo", selected_text="teh")
    assert render_comment(3, comment) == '  Comment 3 on "teh...": typo'


def test_general_comment_never_shows_an_excerpt() -> None:
    comment = Comment(type=CommentType.GENERAL, comment="overall fine")
    assert render_comment(1, comment) == "  Comment 1 (general): overall fine"


def test_needs_revision_without_comments_has_no_comment_header() -> None:
    steps = status_next_steps(ApprovalStatus.NEEDS_REVISION)
    assert steps == [
        "BLOCKED - Do not proceed",
        "Update document with feedback",
        "Create NEW approval request",
    ]


def test_status_accepts_raw_string_values() -> None:
    assert status_next_steps("approved")[0] == "APPROVED - Can proceed"  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        status_next_steps("archived")  # type: ignore[arg-type]


def test_status_message() -> None:
    assert status_message(ApprovalStatus.PENDING) == (
        "BLOCKED: Status is pending. Verbal approval is NOT accepted. Use dashboard or VS Code extension only."
    )
    assert status_message(ApprovalStatus.NEEDS_REVISION) == "Approval status: needs-revision"


def test_request_next_steps_mentions_dashboard_when_known() -> None:
    with_url = request_next_steps("approval_1", "http://localhost:5000")
    assert with_url[3] == "Use dashboard: http://localhost:5000 or VS Code extension 'Spec Workflow MCP'"
    assert with_url[-1] == 'Poll status with: approvals action:"status" approvalId:"approval_1"'
    assert request_next_steps("approval_1", None)[3] == "VS Code extension Spec Workflow MCP"
