"""Errors surfaced by a follow session."""


class FollowError(Exception):
    """Base class for follow errors."""


class FileGoneError(FollowError):
    """The followed file went away and could not be reopened."""

    def __init__(self, path: str):
        self.path = path
        super().__init__("follow: file went away and can't reopen")


class FollowTimeout(FollowError, TimeoutError):
    """The session ran past its timeout."""


class SubscriptionError(FollowError):
    """The directory notification source reported a failure."""
