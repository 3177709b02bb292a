from __future__ import annotations


class VaultError(Exception):
    """Base error for vault operations.

    ``operation`` and ``identifier`` name what failed and on which slug/id so the
    command layer can render a message without parsing ``str(err)``.
    """

    def __init__(self, message: str, *, operation: str | None = None, identifier: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.identifier = identifier


class NotFoundError(VaultError, FileNotFoundError):
    pass


class VaultIOError(VaultError, OSError):
    pass


class ParseError(VaultError, ValueError):
    pass


class UnknownEntityError(VaultError, LookupError):
    pass


class AlreadyExistsError(VaultError, FileExistsError):
    pass


class PathError(VaultError, ValueError):
    pass
