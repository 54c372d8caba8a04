"""
core/errors.py -- Domain error taxonomy for wwwbase.

Every recoverable failure the core can produce is one of these classes. Route
handlers catch WwwBaseError, turn the message into an "error" flash and
redirect back to the originating form; nothing here ever reaches the client
as a stack trace.

  ValidationError            bad field content (InvalidCredentials, InvalidRecord)
  Conflict                   uniqueness violation in storage (nick / email)
  NotOwner                   mutation attempted by someone other than the owner
  NotFound                   missing entity
  StartupInvariantViolation  admin bootstrap inconsistency -- fatal

Layer rule: core/ is the kernel. No imports from api/, web/, auth/ or records/.
"""

from __future__ import annotations


class WwwBaseError(Exception):
    """Base class for wwwbase domain errors.

    message is short and human readable -- it is shown to the user verbatim
    through the flash queue. code is a stable machine identifier used by the
    JSON error envelope and by tests.
    """

    code = "error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(WwwBaseError):
    code = "validation_error"


class InvalidCredentials(ValidationError):
    """User fields failed validation, or login did not match any account."""

    code = "invalid_credentials"


class InvalidRecord(ValidationError):
    code = "invalid_record"


class Conflict(WwwBaseError):
    code = "conflict"


class NotOwner(WwwBaseError):
    """Authorization failure on edit/delete.

    The message is deliberately generic: a non-owner must not learn whether
    the record exists.
    """

    code = "permission_denied"

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message)


class NotFound(WwwBaseError):
    code = "not_found"


class StartupInvariantViolation(WwwBaseError):
    """The persisted state contradicts a bootstrap invariant. The process must not start."""

    code = "startup_invariant"
