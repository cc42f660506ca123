"""
Donor Oversight Platform
Approval Workflow Service.

State machine:

    Submitted ──► FinanceApproved ──► CommitteeApproved
        │                │
        └──► Rejected ◄──┘

Design decisions:
    - Transitions only move forward.  CommitteeApproved and Rejected are
      terminal; any attempt to leave them is a 409.
    - Every transition is a compare-and-set on ``state``
      (``UPDATE ... WHERE id = :id AND state = :expected``) so two
      concurrent decisions on the same approval cannot both succeed.
    - Admin may act at either stage.  An Admin finance approval records
      both stages and lands directly on CommitteeApproved.
    - Submissions below BOTH the USD and the percent threshold start at
      FinanceApproved with a system history entry.
    - Changes are applied to the activity by the submitter before the
      request is raised; approval finalises them.  Rejecting an
      EstimateChange restores ``old_value`` only if the activity's
      ``version`` still equals the version captured at submission.
"""

import logging
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value

from oversight.constants import (
    APPROVAL_TARGET_TYPES,
    ROLE_ADMIN,
    ROLE_COMMITTEE,
    ROLE_FINANCE,
    STATE_COMMITTEE_APPROVED,
    STATE_FINANCE_APPROVED,
    STATE_REJECTED,
    STATE_SUBMITTED,
)
from oversight.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from oversight.models import db
from oversight.models.activity import Activity
from oversight.models.approval import Approval
from oversight.models.audit import write_audit
from oversight.models.base import iso, utcnow
from oversight.services.activity_service import bump_version, clear_stale_lock, get_activity
from oversight.services.notification_service import NotificationService
from oversight.services.objective_service import recompute_objective_spend
from oversight.services.settings_service import approval_thresholds
from oversight.utils.helpers import paginate, parse_money

logger = logging.getLogger(__name__)

AUTO_APPROVED_BELOW_THRESHOLD = "Auto-approved (below threshold)"
AUTO_APPROVED_MULTI_ROLE = "Auto-approved (multi-role user)"

_LABELS = {
    "EstimateChange": "estimate change",
    "ActualEntry": "actual entry",
    "StatusChange": "status change",
}


# ── Private helpers ────────────────────────────────────────────────────────────


def _history_entry(state, actor_id, comment=None, old_value=None, new_value=None, now=None):
    return {
        "state": state,
        "actor_id": actor_id,
        "timestamp": iso(now or utcnow()),
        "comment": comment,
        "old_value": float(old_value) if old_value is not None else None,
        "new_value": float(new_value) if new_value is not None else None,
    }


def _transition(approval: Approval, expected_state: str, values: dict) -> None:
    """Compare-and-set the approval row; 409 if its state moved underneath us."""
    values = {**values, "updated_at": utcnow()}
    result = db.session.execute(
        update(Approval)
        .where(Approval.id == approval.id, Approval.state == expected_state)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        current = db.session.get(Approval, approval.id)
        raise StateConflictError(
            f"Approval was already processed (current state: {current.state if current else 'unknown'})",
            details={"expected_state": expected_state,
                     "current_state": current.state if current else None},
        )
    for key, value in values.items():
        set_committed_value(approval, key, value)


def _email_context(approval: Approval, **extra) -> dict:
    activity = approval.activity
    ctx = {
        "activity_title": activity.title if activity else "Activity",
        "target_type": _LABELS.get(approval.target_type, approval.target_type),
        "old_value": f"{float(approval.old_value):,.2f}" if approval.old_value is not None else "-",
        "new_value": f"{float(approval.new_value):,.2f}" if approval.new_value is not None else "-",
    }
    ctx.update(extra)
    return ctx


def _notify_finance(approval: Approval, submitter) -> None:
    recipients = NotificationService.user_ids_with_roles(
        (ROLE_FINANCE, ROLE_ADMIN), exclude_user_id=submitter.id,
    )
    NotificationService.notify_users(
        recipients,
        type="ApprovalSubmitted",
        title="New Approval Request",
        message=f"{submitter.full_name} submitted "
                f"{_LABELS.get(approval.target_type, approval.target_type)} "
                f"for {approval.activity.title}",
        link=f"/approvals/{approval.id}",
        email_template="approval_submitted",
        email_context=_email_context(approval, submitter_name=submitter.full_name),
    )


def _notify_committee(approval: Approval, exclude_user_id) -> None:
    recipients = NotificationService.user_ids_with_roles(
        (ROLE_COMMITTEE, ROLE_ADMIN), exclude_user_id=exclude_user_id,
    )
    NotificationService.notify_users(
        recipients,
        type="ApprovalSubmitted",
        title="Approval Awaiting Committee Review",
        message=f"{_LABELS.get(approval.target_type, approval.target_type).capitalize()} "
                f"for {approval.activity.title} requires committee approval",
        link=f"/approvals/{approval.id}",
        email_template="finance_approved",
        email_context=_email_context(approval),
    )


def _notify_submitter(approval: Approval, title, message, template, **extra) -> None:
    if approval.submitted_by_id is None:
        return
    NotificationService.create(
        user_id=approval.submitted_by_id,
        type="ApprovalDecision",
        title=title,
        message=message,
        link=f"/approvals/{approval.id}",
        email_template=template,
        email_context=_email_context(approval, **extra),
    )


def _apply_approved_changes(approval: Approval) -> None:
    """Changes were applied at submission; record that they are now final."""
    logger.info("Approval %d finalised %s on activity %d",
                approval.id, approval.target_type, approval.target_id,
                extra={"approval_id": approval.id, "activity_id": approval.target_id})


def _revert_rejected_changes(approval: Approval) -> None:
    """Restore ``old_value`` for a rejected EstimateChange under the version check."""
    if approval.target_type != "EstimateChange" or approval.old_value is None:
        return
    activity = db.session.get(Activity, approval.target_id)
    if activity is None or activity.is_deleted:
        return

    clear_stale_lock(activity)
    if approval.target_version is not None and activity.version != approval.target_version:
        raise StateConflictError(
            "Activity has changed since this approval was submitted; "
            "the estimate cannot be reverted automatically",
            details={"activity_version": activity.version,
                     "submitted_version": approval.target_version},
        )

    previous = activity.estimated_spend_usd_total
    activity.estimated_spend_usd_total = Decimal(str(approval.old_value))
    bump_version(activity)
    recompute_objective_spend(activity.objective_id)
    write_audit(action="Update", object_type="Activity", object_id=activity.id,
                previous_values={"estimated_spend_usd_total": previous},
                new_values={"estimated_spend_usd_total": activity.estimated_spend_usd_total},
                comment=f"Reverted after rejection of approval {approval.id}")


# ── Public API ─────────────────────────────────────────────────────────────────


def get_approval(approval_id: int) -> Approval:
    approval = db.session.get(Approval, approval_id)
    if approval is None:
        raise NotFoundError(resource="Approval", resource_id=approval_id)
    return approval


def check_threshold(old_value, new_value) -> bool:
    """True when the change is below BOTH the USD and the percent threshold."""
    usd_threshold, pct_threshold = approval_thresholds()
    old = float(old_value)
    change = abs(float(new_value) - old)
    pct = (change / old * 100) if old > 0 else 100.0
    return change < usd_threshold and pct < pct_threshold


def submit_approval(data: dict, user) -> Approval:
    """
    Raise an approval request for an activity change.

    Body keys: target_type, target_id, old_value?, new_value?, comment?
    """
    errors = {}
    target_type = data.get("target_type")
    if target_type not in APPROVAL_TARGET_TYPES:
        errors["target_type"] = f"must be one of {', '.join(APPROVAL_TARGET_TYPES)}"
    try:
        target_id = int(data.get("target_id"))
    except (TypeError, ValueError):
        errors["target_id"] = "required"
        target_id = None

    values = {}
    for field in ("old_value", "new_value"):
        raw = data.get(field)
        if raw is None:
            values[field] = None
            continue
        try:
            values[field] = parse_money(raw)
        except ValueError:
            errors[field] = "must be a number"
    if errors:
        raise ValidationError("Invalid approval request", details=errors)

    activity = get_activity(target_id)
    old_value, new_value = values["old_value"], values["new_value"]
    comment = (data.get("comment") or "").strip() or None

    below = (
        old_value is not None and new_value is not None
        and check_threshold(old_value, new_value)
    )
    now = utcnow()
    history = [_history_entry(STATE_SUBMITTED, user.id, comment, old_value, new_value, now)]
    if below:
        history.append(_history_entry(STATE_FINANCE_APPROVED, None,
                                      AUTO_APPROVED_BELOW_THRESHOLD, now=now))

    approval = Approval(
        target_type=target_type,
        target_id=activity.id,
        state=STATE_FINANCE_APPROVED if below else STATE_SUBMITTED,
        old_value=old_value,
        new_value=new_value,
        target_version=activity.version,
        comment=comment,
        history=history,
        submitted_by_id=user.id,
    )
    if below:
        approval.finance_approved_at = now
        approval.finance_comment = AUTO_APPROVED_BELOW_THRESHOLD
    db.session.add(approval)
    db.session.flush()

    write_audit(action="Create", object_type="Approval", object_id=approval.id,
                new_values={"target_type": target_type, "target_id": activity.id,
                            "state": approval.state, "below_threshold": below,
                            "old_value": old_value, "new_value": new_value})

    if below:
        _notify_committee(approval, exclude_user_id=user.id)
    else:
        _notify_finance(approval, user)
    db.session.commit()

    logger.info("Approval %d submitted for activity %d (%s)", approval.id, activity.id,
                approval.state, extra={"approval_id": approval.id, "activity_id": activity.id,
                                       "user_id": user.id})
    return approval


def finance_approve(approval_id: int, user, comment: str | None = None) -> Approval:
    approval = get_approval(approval_id)
    if user.role not in (ROLE_FINANCE, ROLE_ADMIN):
        raise PermissionDeniedError("Only Finance or Admin can give finance approval")
    if approval.state != STATE_SUBMITTED:
        raise StateConflictError(f"Cannot finance-approve from state {approval.state}",
                                 details={"current_state": approval.state})

    comment = (comment or "").strip() or None
    now = utcnow()
    multi_role = user.is_admin
    history = [*(approval.history or []), _history_entry(STATE_FINANCE_APPROVED, user.id, comment, now=now)]
    values = {
        "finance_approved_by_id": user.id,
        "finance_approved_at": now,
        "finance_comment": comment,
    }
    if multi_role:
        history.append(_history_entry(STATE_COMMITTEE_APPROVED, user.id, AUTO_APPROVED_MULTI_ROLE, now=now))
        values.update(
            state=STATE_COMMITTEE_APPROVED,
            committee_approved_by_id=user.id,
            committee_approved_at=now,
            committee_comment=AUTO_APPROVED_MULTI_ROLE,
        )
    else:
        values["state"] = STATE_FINANCE_APPROVED
    values["history"] = history

    _transition(approval, STATE_SUBMITTED, values)
    write_audit(action="Approve", object_type="Approval", object_id=approval.id,
                previous_values={"state": STATE_SUBMITTED},
                new_values={"state": approval.state, "finance_comment": comment})

    if multi_role:
        _apply_approved_changes(approval)
        _notify_submitter(approval, "Approval Completed",
                          f"Your {_LABELS.get(approval.target_type, approval.target_type)} "
                          f"has been fully approved", "approved")
    else:
        _notify_committee(approval, exclude_user_id=user.id)
    db.session.commit()

    logger.info("Approval %d: Submitted → %s by user %d", approval.id, approval.state, user.id,
                extra={"approval_id": approval.id, "user_id": user.id})
    return approval


def committee_approve(approval_id: int, user, comment: str | None = None) -> Approval:
    approval = get_approval(approval_id)
    if user.role not in (ROLE_COMMITTEE, ROLE_ADMIN):
        raise PermissionDeniedError("Only Committee members or Admin can give committee approval")
    if approval.state != STATE_FINANCE_APPROVED:
        raise StateConflictError(f"Cannot committee-approve from state {approval.state}",
                                 details={"current_state": approval.state})

    comment = (comment or "").strip() or None
    now = utcnow()
    _transition(approval, STATE_FINANCE_APPROVED, {
        "state": STATE_COMMITTEE_APPROVED,
        "committee_approved_by_id": user.id,
        "committee_approved_at": now,
        "committee_comment": comment,
        "history": [*(approval.history or []),
                    _history_entry(STATE_COMMITTEE_APPROVED, user.id, comment, now=now)],
    })
    write_audit(action="Approve", object_type="Approval", object_id=approval.id,
                previous_values={"state": STATE_FINANCE_APPROVED},
                new_values={"state": STATE_COMMITTEE_APPROVED, "committee_comment": comment})

    _apply_approved_changes(approval)
    _notify_submitter(approval, "Approval Completed",
                      f"Your {_LABELS.get(approval.target_type, approval.target_type)} "
                      f"has been fully approved", "approved")
    db.session.commit()

    logger.info("Approval %d: FinanceApproved → CommitteeApproved by user %d", approval.id, user.id,
                extra={"approval_id": approval.id, "user_id": user.id})
    return approval


def reject_approval(approval_id: int, user, reason: str | None) -> Approval:
    approval = get_approval(approval_id)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required", details={"reason": "required"})

    allowed = {
        STATE_SUBMITTED: (ROLE_FINANCE, ROLE_ADMIN),
        STATE_FINANCE_APPROVED: (ROLE_COMMITTEE, ROLE_ADMIN),
    }
    expected_state = approval.state
    if approval.is_terminal:
        raise StateConflictError(f"Cannot reject from state {expected_state}",
                                 details={"current_state": expected_state})
    if user.role not in allowed[expected_state]:
        raise PermissionDeniedError(f"Your role cannot reject an approval in state {expected_state}")

    _revert_rejected_changes(approval)

    now = utcnow()
    _transition(approval, expected_state, {
        "state": STATE_REJECTED,
        "rejected_by_id": user.id,
        "rejected_at": now,
        "rejection_reason": reason,
        "history": [*(approval.history or []), _history_entry(STATE_REJECTED, user.id, reason, now=now)],
    })
    write_audit(action="Reject", object_type="Approval", object_id=approval.id,
                previous_values={"state": expected_state},
                new_values={"state": STATE_REJECTED, "rejection_reason": reason})

    _notify_submitter(approval, "Approval Rejected",
                      f"Your {_LABELS.get(approval.target_type, approval.target_type)} "
                      f"was rejected: {reason}", "rejected", reason=reason)
    db.session.commit()

    logger.info("Approval %d: %s → Rejected by user %d", approval.id, expected_state, user.id,
                extra={"approval_id": approval.id, "user_id": user.id})
    return approval


def list_approvals(*, state=None, target_type=None, target_id=None, submitted_by=None,
                   page=1, limit=50) -> dict:
    q = Approval.query
    if state:
        q = q.filter(Approval.state == state)
    if target_type:
        q = q.filter(Approval.target_type == target_type)
    if target_id:
        q = q.filter(Approval.target_id == target_id)
    if submitted_by:
        q = q.filter(Approval.submitted_by_id == submitted_by)
    result = paginate(q.order_by(Approval.created_at.desc(), Approval.id.desc()), page, limit)
    result["items"] = [a.to_dict() for a in result["items"]]
    return result


def pending_for(user) -> list[Approval]:
    """Approvals waiting on the caller's role."""
    if user.is_admin:
        states = [STATE_SUBMITTED, STATE_FINANCE_APPROVED]
    elif user.role == ROLE_FINANCE:
        states = [STATE_SUBMITTED]
    elif user.role == ROLE_COMMITTEE:
        states = [STATE_FINANCE_APPROVED]
    else:
        return []
    return (
        Approval.query
        .filter(Approval.state.in_(states))
        .order_by(Approval.created_at.asc(), Approval.id.asc())
        .all()
    )
