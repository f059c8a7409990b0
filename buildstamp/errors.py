class StampError(Exception):
    """Base class for failures that abort a stamping run."""


class ConfigError(StampError):
    """Invalid configuration, override or requested backend."""


class EditorError(StampError):
    """A document could not be read, edited or written back."""

    def __init__(self, path, message):
        super().__init__(f"{path}: {message}")
        self.path = path
