"""Exception taxonomy for the scanner."""

from typing import Optional


class ScannerError(Exception):
    """Base class for scanner errors"""


class RegistryLoadError(ScannerError):
    """Known-bad list could not be read"""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to load known-bad list {path}: {reason}")


class DirectoryAccessError(ScannerError):
    """A directory could not be listed during the walk"""

    def __init__(self, path, cause: OSError):
        self.path = path
        self.cause = cause
        self.permission_denied = isinstance(cause, PermissionError)
        super().__init__(f"Unable to access directory {path}: {cause.strerror or cause}")


class LockfileParseError(ScannerError):
    """A lockfile could not be parsed by its primary strategy"""

    def __init__(self, message: str, path: Optional[str] = None, dialect: Optional[str] = None):
        self.message = message
        self.path = path
        self.dialect = dialect
        super().__init__(message)

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class InvalidTargetDirectory(ScannerError):
    """Scan root does not exist or is not a directory"""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Directory does not exist: {path}")
