"""Exception types shared across the discussion core."""


class CouncilError(Exception):
    """Base class for errors raised by the council."""


class ConfigurationError(CouncilError):
    """Raised when settings or controller bookkeeping are invalid.

    Always raised before any round executes.
    """

    def __init__(self, setting: str, message: str) -> None:
        self.setting = setting
        super().__init__(f"[{setting}] {message}")
