"""Exceptions for publishdir."""


class PublishError(Exception):
    """Base class for every failure of a publish run.

    *step* names the operation that failed (``"push"``, ``"copy directory"``);
    the message renders as ``failed to <step>: <cause>``.
    """

    def __init__(self, step: str, cause):
        self.step = step
        self.cause = cause
        super().__init__(f"failed to {step}: {cause}")


class ConfigError(PublishError):
    """Missing or invalid configuration, raised before any mutation."""

    def __init__(self, message: str):
        self.step = "load configuration"
        self.cause = message
        Exception.__init__(self, message)


class PreconditionError(ConfigError):
    """The source folder is absent or unreadable."""


class AcquireError(PublishError):
    """A fresh repository could not be set up after the clone attempt failed."""


class WorkTreeError(PublishError):
    """An I/O failure while cleaning or repopulating the working tree."""


class GitOperationError(PublishError):
    """Staging, status, commit, or push failed."""


class PushRejectedError(GitOperationError):
    """The remote refused the update, or the branch moved since it was cloned.

    Another publisher updated the branch concurrently. The run is not
    retried; re-run to publish on top of the new tip.
    """
