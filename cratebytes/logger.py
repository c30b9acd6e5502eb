"""SDK-wide logger, gated by the ``enable_logging`` setting."""
from __future__ import annotations

from colorama import Fore, Style, init as colorama_init

colorama_init()

RED = Fore.RED
GREEN = Fore.GREEN
YELLOW = Fore.YELLOW
RESET = Style.RESET_ALL

PREFIX = "[CrateBytes]"


class SdkLogger:
    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled

    def log(self, message: object) -> None:
        self._emit(message, GREEN)

    def warn(self, message: object) -> None:
        self._emit(message, YELLOW)

    def error(self, message: object) -> None:
        self._emit(message, RED)

    def _emit(self, message: object, color: str) -> None:
        if not self.enabled:
            return
        try:
            print(f"{color}{PREFIX} {message}{RESET}")
        except OSError:
            # stdout closed or detached
            pass
