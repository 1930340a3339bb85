from .config import Config
from .branch import Checkout, acquire, probe_branch
from .publisher import PublishResult, publish
from .worktree import clean_working_tree, mirror_directory
from .remote import Credential
from .exceptions import (
    PublishError, ConfigError, PreconditionError, AcquireError,
    WorkTreeError, GitOperationError, PushRejectedError,
)

__all__ = [
    "Config", "Checkout", "acquire", "probe_branch",
    "PublishResult", "publish",
    "clean_working_tree", "mirror_directory", "Credential",
    "PublishError", "ConfigError", "PreconditionError", "AcquireError",
    "WorkTreeError", "GitOperationError", "PushRejectedError",
]
