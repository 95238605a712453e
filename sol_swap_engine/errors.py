from __future__ import annotations

from typing import Any


class SwapError(Exception):
    """Any failure along the quote -> build -> sign -> send path."""


class JupiterError(SwapError):
    pass


class NetworkError(SwapError):
    pass


class SimulationError(SwapError):
    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result


class ConfirmationError(SwapError):
    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result
