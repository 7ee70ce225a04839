from __future__ import annotations

from typing import Sequence, assert_never

from .models import ApprovalRecord, ApprovalStatus, Comment, CommentType

SELECTION_EXCERPT_CHARS = 50


def render_comment(index: int, comment: Comment) -> str:
    """Render one reviewer comment as a 1-based guidance line."""
    if comment.type is CommentType.SELECTION and comment.selected_text:
        excerpt = comment.selected_text[:SELECTION_EXCERPT_CHARS]
        return f'  Comment {index} on "{excerpt}...": {comment.comment}'
    return f"  Comment {index} (general): {comment.comment}"


def status_next_steps(
    status: ApprovalStatus,
    *,
    response: str | None = None,
    annotations: str | None = None,
    comments: Sequence[Comment] = (),
) -> list[str]:
    """Map a record's review outcome to the ordered guidance shown to the agent."""
    status = ApprovalStatus(status)
    steps: list[str] = []
    if status is ApprovalStatus.PENDING:
        steps.append("BLOCKED - Do not proceed")
        steps.append("VERBAL APPROVAL NOT ACCEPTED - Use dashboard or VS Code extension only")
        steps.append("Approval must be done via dashboard or VS Code extension")
        steps.append('Continue polling with approvals action:"status"')
    elif status is ApprovalStatus.APPROVED:
        steps.append("APPROVED - Can proceed")
        steps.append('Run approvals action:"delete" before continuing')
        if response:
            steps.append(f"Response: {response}")
    elif status is ApprovalStatus.REJECTED:
        steps.append("BLOCKED - REJECTED")
        steps.append("Do not proceed")
        steps.append("Review feedback and revise")
        if response:
            steps.append(f"Reason: {response}")
        if annotations:
            steps.append(f"Notes: {annotations}")
    elif status is ApprovalStatus.NEEDS_REVISION:
        steps.append("BLOCKED - Do not proceed")
        steps.append("Update document with feedback")
        steps.append("Create NEW approval request")
        if response:
            steps.append(f"Feedback: {response}")
        if annotations:
            steps.append(f"Notes: {annotations}")
        if comments:
            steps.append(f"{len(comments)} comments for targeted fixes:")
            steps.extend(render_comment(index, comment) for index, comment in enumerate(comments, start=1))
    else:
        assert_never(status)
    return steps


def next_steps_for(record: ApprovalRecord) -> list[str]:
    return status_next_steps(
        record.status,
        response=record.response,
        annotations=record.annotations,
        comments=record.comments,
    )


def status_message(status: ApprovalStatus) -> str:
    if status is ApprovalStatus.PENDING:
        return (
            f"BLOCKED: Status is {status.value}. Verbal approval is NOT accepted. "
            "Use dashboard or VS Code extension only."
        )
    return f"Approval status: {status.value}"


def request_next_steps(approval_id: str, dashboard_url: str | None) -> list[str]:
    """Guidance returned right after an approval request is created."""
    return [
        "BLOCKING - Dashboard or VS Code extension approval required",
        "VERBAL APPROVAL NOT ACCEPTED",
        "Do not proceed on verbal confirmation",
        (
            f"Use dashboard: {dashboard_url} or VS Code extension 'Spec Workflow MCP'"
            if dashboard_url
            else "VS Code extension Spec Workflow MCP"
        ),
        f'Poll status with: approvals action:"status" approvalId:"{approval_id}"',
    ]


DELETE_BLOCKED_STEPS = (
    "STOP - Do not proceed to next phase",
    "Wait for approval",
    'Poll with approvals action:"status"',
)
DELETE_NOT_FOUND_STEPS = ("Verify approval ID", 'Check status with approvals action:"status"')
DELETE_DONE_STEPS = ("Cleanup complete", "Continue to next phase")
DELETE_FAILED_STEPS = ("Check file permissions", "Verify approval exists", "Retry")
DELETE_ERROR_STEPS = ("Check project path", "Verify permissions", "Check approval system")
