"""ANSI color codes for terminal output.

All colors use the 256-color palette.

Usage:
    from toolhub_core.logging.colors import GREEN, RED, RESET

    print(f"{GREEN}Connected{RESET}")
"""

RESET = "\033[0m"

# Status
GREEN = "\033[38;5;82m"  # ready / success
RED = "\033[38;5;196m"  # failure
YELLOW = "\033[38;5;226m"  # warnings, name collisions
ORANGE = "\033[38;5;208m"  # transport chatter (server stderr)

# Information
LIGHT_BLUE = "\033[38;5;153m"  # context payloads
CYAN = "\033[38;5;51m"  # info
MAGENTA = "\033[38;5;201m"  # manager events

__all__ = [
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
