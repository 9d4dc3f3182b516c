"""logfollow - follow a file like tail -F, surviving truncation and rotation."""

__version__ = "0.1.0"

from .config import FollowConfig
from .errors import FileGoneError, FollowError, FollowTimeout, SubscriptionError
from .follower import Follower, Record, State

__all__ = [
    "FileGoneError",
    "FollowConfig",
    "FollowError",
    "FollowTimeout",
    "Follower",
    "Record",
    "State",
    "SubscriptionError",
]
