# app/common/errors.py

"""
Failure kinds raised by the relationship services.

Every error is a recoverable, caller-facing condition: the HTTP layer turns
it into ``{"detail": ..., "kind": ...}`` with ``status_code``. Malformed
stored data is never reported through these; it is repaired silently.
"""


class RelationshipError(Exception):
    kind = "RelationshipError"
    status_code = 400
    default_message = "Relationship operation failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidTarget(RelationshipError):
    kind = "InvalidTarget"
    default_message = "Invalid target user"


class UserNotFound(RelationshipError):
    kind = "UserNotFound"
    status_code = 404
    default_message = "User not found"


class AlreadyFriends(RelationshipError):
    kind = "AlreadyFriends"
    default_message = "Already friends with this user"


class DuplicateRequest(RelationshipError):
    kind = "DuplicateRequest"
    default_message = "Friend request already sent"


class RequestNotFound(RelationshipError):
    kind = "RequestNotFound"
    status_code = 404
    default_message = "Friend request not found"


class StoreUnavailable(RelationshipError):
    kind = "StoreUnavailable"
    status_code = 503
    default_message = "User store is unavailable"


class ConflictRetryExhausted(RelationshipError):
    kind = "ConflictRetryExhausted"
    status_code = 409
    default_message = "Too many concurrent updates, try again"
