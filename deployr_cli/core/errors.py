"""
Local (non-transport) errors raised by the CLI.

Remote failures live in core.services; everything here is something
the user can fix on their side: config, input files, credentials.
"""

from typing import Optional


class DeployRCliError(Exception):
    """Base error for local CLI problems."""
    pass


class ConfigError(DeployRCliError):
    """The config file exists but could not be parsed or written."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Config {path}: {message}")


class ScriptNotFoundError(DeployRCliError):
    """The R script handed to ``job submit`` could not be read."""

    def __init__(self, filepath: str, cause: Optional[Exception] = None):
        self.filepath = filepath
        self.cause = cause
        reason = str(cause) if cause else f"Cannot read '{filepath}'"
        super().__init__(
            f"{reason}. Make sure this file exists or your R working directory\n"
            f"       is set to the location of '{filepath}'"
        )


class ArchiveError(DeployRCliError):
    """An exported project archive could not be extracted."""

    def __init__(self, archive: str, cause: Optional[Exception] = None):
        self.archive = archive
        self.cause = cause
        message = f"Could not extract job result archive {archive}"
        if cause:
            message += f": {cause}"
        super().__init__(message)


class AuthenticationError(DeployRCliError):
    """Login failed, or the server still refused us after logging in."""
    pass
