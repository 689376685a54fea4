"""
Standard exit codes for flowgate commands.

Codes 2-8 are the flow-specific outcomes of fork/land/finish; the rest
follow the Unix/POSIX conventions used by other command-line tools.
"""
from typing import Optional

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors

# Flow outcomes
FORK_NOT_ALLOWED = 2     # Policy forbids forking this role from that parent
CLASSIFICATION_ERROR = 3 # Branch name maps to no role
MERGE_NOT_ALLOWED = 4    # Policy forbids merging source role into target role
MERGE_CONFLICT = 5       # Backend reported content conflicts
STALE_REF = 6            # Caller's known head no longer matches the backend
PARTIAL_RELEASE = 7      # Main-side merge landed, companion merge did not
NON_MONOTONIC_VERSION = 8  # Proposed version does not exceed the latest tag

# Application-specific exit codes (64-113 are typically available)
BACKEND_ERROR = 65       # Version-control backend call failed
CONFIG_ERROR = 66        # Configuration file error
DATA_ERROR = 70          # Data format or validation error
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT) or cancelled

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'FileNotFoundError': GENERAL_ERROR,
    'PermissionError': GENERAL_ERROR,
    'TimeoutError': BACKEND_ERROR,
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'JSONDecodeError': CONFIG_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: Exception) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    exit_code = getattr(exc, 'exit_code', None)
    if isinstance(exit_code, int):
        return exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    exit_code = GENERAL_ERROR

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON error output."""
        return {
            "error": str(self),
            "type": type(self).__name__,
            "exit_code": self.exit_code,
        }


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    exit_code = CONFIG_ERROR
