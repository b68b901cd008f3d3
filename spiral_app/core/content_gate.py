# spiral_app/core/content_gate.py

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from spiral_app.config.constants import CONTENT_REQUIREMENTS
from spiral_app.core.membership import MembershipManager, has_membership_level

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class ContentGate:
    """Decides whether a user may see a named content block."""

    def __init__(self, db: Session):
        self.membership = MembershipManager(db)

    def required_level(self, tag: str, override: Optional[str] = None) -> str:
        if override is not None:
            return override
        return CONTENT_REQUIREMENTS.get(tag, "")

    def check_access(
        self, user_id: Optional[int], tag: str, required_level: Optional[str] = None
    ) -> Dict[str, Any]:
        required = self.required_level(tag, required_level)
        result = {
            "tag": tag,
            "required_level": required,
            "user_level": None,
            "allowed": True,
            "reason": None,
            "message": None,
        }
        if not required:
            return result

        if not user_id:
            result.update(
                allowed=False,
                reason="login_required",
                message="Please log in to access this content.",
            )
            return result

        user_level = self.membership.get_membership_level(user_id)
        result["user_level"] = user_level
        if not has_membership_level(user_level, required):
            result.update(
                allowed=False,
                reason="membership_required",
                message="This content requires %s membership or higher." % required.capitalize(),
            )
            logger.info("User %s (%s) denied '%s'", user_id, user_level, tag)
        return result
