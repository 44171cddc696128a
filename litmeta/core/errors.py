"""Error types raised by litmeta.

User-facing problems (bad input, merge conflicts) are ``UserError``;
a meta repository whose tree and submodule data disagree raises
``ConsistencyError``.  Failures of the storage layer itself surface as
``ObjectNotFoundError`` or plain ``OSError`` and are never retried here.
"""


class LitMetaError(Exception):
    """Base class for all litmeta errors."""


class UserError(LitMetaError):
    """Bad or ambiguous input, reported verbatim to the user."""


class NotFoundError(UserError):
    """A named submodule, reference or object does not exist."""


class ConsistencyError(LitMetaError):
    """The meta tree is out of sync with the available submodule data."""


class ObjectNotFoundError(LitMetaError):
    """An object id could not be found in a repository's object store."""

    def __init__(self, obj_hash: str):
        super().__init__(f"Object {obj_hash} not found")
        self.hash = obj_hash
