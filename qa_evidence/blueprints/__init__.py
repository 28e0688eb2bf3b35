"""
QA Evidence Hub
Blueprint registry and shared request helpers.
"""

from flask import request

from qa_evidence.core.exceptions import PermissionDenied
from qa_evidence.services import user_service

ACTOR_HEADER = "X-User"


def current_actor(required=True):
    """Acting user from the ``X-User`` acronym header.

    Returns the User row, or None when the header is absent and not required.
    Raises PermissionDenied for an unknown or inactive acronym.
    """
    acronym = (request.headers.get(ACTOR_HEADER) or "").strip()
    if not acronym:
        if required:
            raise PermissionDenied("perform this action without identifying the user")
        return None
    user = user_service.find_by_acronym(acronym)
    if user is None or not user.is_active:
        raise PermissionDenied("act as an unknown or inactive user", actor=acronym)
    return user
