"""Data models for SAML VPN sessions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class AttemptOutcome(Enum):
    """Result of a single VPN client launch"""
    PENDING = "pending"
    SUCCESS = "success"
    AUTH_FAILED = "auth-failed"
    OTHER_ERROR = "other-error"


class SessionState(Enum):
    """States of the authentication and supervision loop"""
    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting-callback"
    CREDENTIAL_READY = "credential-ready"
    LAUNCHING = "launching"
    RUNNING = "running"
    ATTEMPT_FAILED = "attempt-failed"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    DONE = "done"


@dataclass(frozen=True)
class Endpoint:
    """VPN gateway address taken from the OpenVPN config"""
    host: str
    port: int
    protocol: str = "udp"


@dataclass(frozen=True)
class Credential:
    """Username and secret delivered by the SAML callback"""
    username: str
    secret: str = field(repr=False)

    def serialize(self) -> str:
        """Render in the two-line format OpenVPN reads with --auth-user-pass."""
        return f"{self.username}\n{self.secret}\n"


@dataclass
class ProcessResult:
    """Outcome reported by the process supervisor"""
    outcome: AttemptOutcome
    returncode: Optional[int] = None


@dataclass
class AttemptState:
    """Bookkeeping for one browser -> callback -> launch cycle"""
    number: int
    credential: Optional[Credential] = field(default=None, repr=False)
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    returncode: Optional[int] = None


@dataclass
class Session:
    """Aggregate state of a whole run"""
    started_at: float
    max_attempts: int
    deadline: Optional[float] = None
    state: SessionState = SessionState.IDLE
    attempts: List[AttemptState] = field(default_factory=list)
    returncode: Optional[int] = None

    @property
    def retries_remaining(self) -> int:
        return self.max_attempts - len(self.attempts)

    def begin_attempt(self) -> AttemptState:
        attempt = AttemptState(number=len(self.attempts) + 1)
        self.attempts.append(attempt)
        return attempt
