"""
Exception hierarchy for the ring localization node.
"""


class RingVisionError(Exception):
    """Base class for all node errors."""


class ConfigError(RingVisionError):
    """Configuration is missing, malformed, or inconsistent."""

    def __init__(self, message: str, path: str = None):
        self.path = path
        if path:
            message = f"config error in '{path}': {message}"
        super().__init__(message)


class FrameSizeMismatch(ConfigError):
    """A frame does not match the declared output stream resolution."""

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"frame size {actual[0]}x{actual[1]} does not match "
            f"output stream size {expected[0]}x{expected[1]}"
        )
