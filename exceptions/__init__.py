class BotError(Exception):
    """Base bot exception."""

class ProbeError(BotError):
    """Raised when the server query fails or times out."""

class FatalError(BotError):
    """Raised when the process has to stop with a specific exit code."""
    exit_code = 1

class UnsupportedLaunchArgument(FatalError):
    """Raised when the server was launched with a log-timestamp override."""
    exit_code = 2

class LogWatcherError(FatalError):
    """Raised when the log watcher cannot continue."""
    exit_code = 3
