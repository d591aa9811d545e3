"""
Console logging for blkcrypt

Strategies and tool wrappers report through these static methods, never
through print(). Errors and warnings go to stderr so the output of the
external tools can still be piped around.
"""

import sys


# ANSI Color Codes
class Colors:
    """ANSI escape codes for terminal colors"""
    RESET = '\033[0m'
    ORANGE = '\033[38;5;214m'
    GREEN = '\033[38;5;46m'
    RED = '\033[38;5;196m'
    YELLOW = '\033[38;5;208m'
    CYAN = '\033[38;5;51m'


class Logger:
    """
    Color-coded messages for the installer console.

    enabled silences everything (used by the tests), verbose adds the
    debug() lines with the executed commands.
    """

    enabled: bool = True
    verbose: bool = False

    @staticmethod
    def _emit(text: str, stream=None) -> None:
        if Logger.enabled:
            print(text, file=stream or sys.stdout)

    @staticmethod
    def success(message: str) -> None:
        Logger._emit(f"{Colors.GREEN}✓{Colors.RESET} {message}")

    @staticmethod
    def error(message: str) -> None:
        Logger._emit(f"{Colors.RED}✗{Colors.RESET} {message}", sys.stderr)

    @staticmethod
    def info(message: str) -> None:
        Logger._emit(f"{Colors.CYAN}[INFO]{Colors.RESET} {message}")

    @staticmethod
    def warning(message: str) -> None:
        Logger._emit(f"{Colors.YELLOW}[WARNING]{Colors.RESET} {message}", sys.stderr)

    @staticmethod
    def debug(tag: str, message: str) -> None:
        """Tagged line, only in verbose mode"""
        if Logger.verbose:
            Logger._emit(f"{Colors.ORANGE}[{tag}]{Colors.RESET} {message}")

    @staticmethod
    def section(title: str) -> None:
        Logger._emit(f"\n{Colors.CYAN}=== {title} ==={Colors.RESET}")
