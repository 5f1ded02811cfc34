"""Console output and terminal prompts."""

import os
import sys

# Colors only on an interactive terminal, and never when NO_COLOR is set
_USE_COLOR = (
    hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    and not os.environ.get("NO_COLOR")
)

RED = "\033[0;31m" if _USE_COLOR else ""
GREEN = "\033[0;32m" if _USE_COLOR else ""
YELLOW = "\033[1;33m" if _USE_COLOR else ""
BLUE = "\033[0;34m" if _USE_COLOR else ""
BOLD = "\033[1m" if _USE_COLOR else ""
NC = "\033[0m" if _USE_COLOR else ""


def print_header(msg: str) -> None:
    print(f"\n{BOLD}{BLUE}--- {msg} ---{NC}")


def print_step(number: int, total: int, name: str) -> None:
    print_header(f"Step {number}/{total}: {name}")


def print_success(msg: str) -> None:
    print(f"{GREEN}[ OK ]{NC} {msg}")


def print_error(msg: str) -> None:
    print(f"{RED}[FAIL]{NC} {msg}", file=sys.stderr)


def print_warning(msg: str) -> None:
    print(f"{YELLOW}[WARN]{NC} {msg}")


def print_info(msg: str) -> None:
    print(f"{BLUE}[INFO]{NC} {msg}")


# ---------------------------------------------------------------------------
# Prompts read from /dev/tty so they still work under `sudo ... | tee log`.
# End of input raises EOFError; an empty line is a valid (empty) answer.
# ---------------------------------------------------------------------------

def _tty_input(prompt_text: str) -> str:
    """Read one line from /dev/tty, or stdin when there is no terminal."""
    try:
        tty = open("/dev/tty", "r")
    except OSError:
        tty = sys.stdin

    try:
        sys.stderr.write(f"{YELLOW}?{NC} {prompt_text}")
        sys.stderr.flush()
        line = tty.readline()
    finally:
        if tty is not sys.stdin:
            tty.close()

    if not line:
        raise EOFError("no more input")
    return line.rstrip("\n")


def prompt_yes_no(prompt: str, default: bool = False) -> bool:
    """Ask a yes/no question; an empty answer takes the default."""
    suffix = " [Y/n]: " if default else " [y/N]: "
    response = _tty_input(prompt + suffix).strip().lower()
    if not response:
        return default
    return response in ("y", "yes")


def prompt_input(prompt: str, default: str = "") -> str:
    """Ask for a free-text value, falling back to default on an empty answer."""
    text = f"{prompt} [{default}]: " if default else f"{prompt}: "
    response = _tty_input(text).strip()
    return response or default
