"""Configuration for a follow session."""

from dataclasses import dataclass


@dataclass
class FollowConfig:
    """Configuration for following a file."""

    # Lines are split on this single byte
    delimiter: bytes = b"\n"

    # Slow reconnect budget in seconds: 0 disables it, negative retries forever
    retry: float = 0.0

    # Fast reconnect phase, meant to absorb write-temp-then-rename patterns
    fast_attempts: int = 10
    fast_interval: float = 0.05

    # Interval between slow reconnect attempts
    slow_interval: float = 1.0

    def __post_init__(self) -> None:
        if isinstance(self.delimiter, str):
            self.delimiter = self.delimiter.encode()
        if len(self.delimiter) != 1:
            raise ValueError(f"delimiter must be a single byte, got {self.delimiter!r}")
        if self.fast_attempts < 0:
            raise ValueError("fast_attempts must not be negative")
        if self.fast_interval <= 0 or self.slow_interval <= 0:
            raise ValueError("reconnect intervals must be positive")

    @property
    def unbounded(self) -> bool:
        """True if the slow reconnect phase never gives up."""
        return self.retry < 0
