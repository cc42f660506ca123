"""
Donor Oversight Platform
Activity comment service.

Replies are one level deep: ``parent_id`` must point at a live comment on
the same activity.  ``@Full Name`` mentions are matched case-insensitively
against active users' full names.
"""

import logging
import re

from oversight.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from oversight.models import db
from oversight.models.audit import write_audit
from oversight.models.comment import Comment
from oversight.models.user import User
from oversight.services.activity_service import get_activity
from oversight.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000

# "@Ada Obi": one to four words after the @
_MENTION_RE = re.compile(r"@([A-Za-z][\w'-]*(?:\.[\w'-]+)*(?:\s+[A-Za-z][\w'-]*(?:\.[\w'-]+)*){0,3})")


def get_comment(comment_id: int) -> Comment:
    comment = Comment.get_active(comment_id)
    if comment is None:
        raise NotFoundError(resource="Comment", resource_id=comment_id)
    return comment


def _clean_content(content) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Comment content is required", details={"content": "required"})
    content = content.strip()
    if len(content) > MAX_COMMENT_LENGTH:
        raise ValidationError("Comment is too long",
                              details={"content": f"must be at most {MAX_COMMENT_LENGTH} characters"})
    return content


def find_mentioned_users(content: str) -> list[User]:
    """Resolve ``@Full Name`` mentions to active users (longest match wins)."""
    candidates = set()
    for match in _MENTION_RE.finditer(content):
        words = match.group(1).split()
        for n in range(len(words), 0, -1):
            candidates.add(" ".join(words[:n]).lower())
    if not candidates:
        return []
    users = User.query.filter(User.is_active.is_(True)).all()
    return [u for u in users if u.full_name.lower() in candidates]


def _can_modify(comment: Comment, user) -> None:
    if comment.user_id != user.id and not user.is_admin:
        raise PermissionDeniedError("Only the author or an Admin can modify this comment")


def list_comments(activity_id: int) -> list[Comment]:
    get_activity(activity_id)
    return (
        Comment.query_active()
        .filter(Comment.activity_id == activity_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def create_comment(activity_id: int, data: dict, user) -> Comment:
    activity = get_activity(activity_id)
    content = _clean_content(data.get("content"))

    parent = None
    if data.get("parent_id") is not None:
        try:
            parent_id = int(data["parent_id"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid parent_id", details={"parent_id": "invalid"}) from exc
        parent = Comment.get_active(parent_id)
        if parent is None or parent.activity_id != activity.id:
            raise ValidationError("Parent comment not found on this activity",
                                  details={"parent_id": "not found"})

    comment = Comment(
        activity_id=activity.id,
        user_id=user.id,
        parent_id=parent.id if parent else None,
        content=content,
    )
    db.session.add(comment)
    db.session.flush()
    write_audit(action="Create", object_type="Comment", object_id=comment.id,
                new_values={"activity_id": activity.id, "parent_id": comment.parent_id,
                            "content": content})

    link = f"/activities/{activity.id}#comment-{comment.id}"
    notified = {user.id}
    for recipient_id in (activity.created_by_id, parent.user_id if parent else None):
        if recipient_id is None or recipient_id in notified:
            continue
        notified.add(recipient_id)
        NotificationService.create(
            user_id=recipient_id,
            type="CommentAdded",
            title="New Comment",
            message=f'{user.full_name} commented on "{activity.title}"',
            link=link,
        )

    for mentioned in find_mentioned_users(content):
        if mentioned.id == user.id:
            continue
        NotificationService.create(
            user_id=mentioned.id,
            type="UserMentioned",
            title="You were mentioned",
            message=f'{user.full_name} mentioned you on "{activity.title}"',
            link=link,
        )
    db.session.commit()
    logger.info("Comment %d added to %s", comment.id, activity.code,
                extra={"activity_id": activity.id, "user_id": user.id})
    return comment


def update_comment(comment_id: int, data: dict, user) -> Comment:
    comment = get_comment(comment_id)
    _can_modify(comment, user)
    content = _clean_content(data.get("content"))
    if content != comment.content:
        previous = comment.content
        comment.content = content
        write_audit(action="Update", object_type="Comment", object_id=comment.id,
                    previous_values={"content": previous}, new_values={"content": content})
    db.session.commit()
    return comment


def delete_comment(comment_id: int, user) -> None:
    comment = get_comment(comment_id)
    _can_modify(comment, user)
    comment.soft_delete()
    write_audit(action="Delete", object_type="Comment", object_id=comment.id,
                previous_values={"content": comment.content})
    db.session.commit()
