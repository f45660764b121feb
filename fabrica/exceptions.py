"""Exception hierarchy for the fabrica build pipeline."""

from typing import List, Tuple


class FabricaError(Exception):
    """Base class for all fabrica errors."""
    pass


class ConfigError(FabricaError):
    """Invalid settings or task graph.

    Always raised before any file I/O happens.
    """
    pass


class SinkError(FabricaError, OSError):
    """One or more destination roots failed to receive a write.

    Attributes:
        failures: List of (root, error) pairs, one per failing destination
    """

    def __init__(self, message: str, failures: List[Tuple[str, Exception]] = None):
        super().__init__(message)
        self.failures = list(failures or [])


class TransformError(FabricaError):
    """A transform stage failed; aborts the owning asset class only."""

    def __init__(self, message: str, stage: str = None, path: str = None):
        super().__init__(message)
        self.stage = stage
        self.path = path


class ExternalProcessFailure(TransformError):
    """An external command exited with a nonzero status."""

    def __init__(self, command: str, returncode: int, stderr: str = ''):
        detail = stderr.strip()
        message = f"command {command!r} exited with status {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, stage='command')
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
