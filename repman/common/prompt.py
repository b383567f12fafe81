"""
Interactive confirmation prompts
"""

from typing import Callable

Confirm = Callable[[str, bool], bool]


def confirm(question: str, default: bool = False) -> bool:
    """Ask a yes/no question on the terminal, an empty answer selects the default"""
    hint = "[Y/n]" if default else "[y/N]"
    while True:
        try:
            answer = input(f"{question} {hint} ").strip().lower()
        except EOFError:
            return default
        if not answer:
            return default
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
        print("Please answer y or n.")
