"""
Custom exceptions for better error handling and user feedback
"""


class FeedError(Exception):
    """Base class for errors that map to a client-visible failure response"""
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BadRequestError(FeedError):
    """Raised when a well-formed request carries a wrong code or token"""
    status_code = 400


class NotFoundError(FeedError):
    """Raised when a referenced post or user does not exist"""
    status_code = 404


class ConflictError(FeedError):
    """Raised when a write collides with a uniqueness constraint"""
    status_code = 409


class DuplicateLikeError(ConflictError):
    """Raised when a concurrent request already inserted the same like"""

    def __init__(self, user_id: int, post_id: int):
        self.user_id = user_id
        self.post_id = post_id
        super().__init__(f"User {user_id} already liked post {post_id}")


class AuthenticationError(FeedError):
    """Raised when credentials or a bearer token are rejected"""
    status_code = 401


class PushError(Exception):
    """Base class for push delivery errors. Never surfaced to API clients."""
    pass


class TransportFailure(PushError):
    """Raised when the push provider is unreachable or rejects the whole request"""
    pass
