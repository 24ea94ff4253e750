"""
Utility functions for RetroRoulette
"""


def format_percent(fraction: float) -> str:
    """
    Format a 0..1 fraction as a percentage with one decimal (e.g. "12.5%").
    """
    return f"{100 * fraction:.1f}%"


def truncate_string(s: str, max_length: int, suffix: str = '...') -> str:
    """
    Truncate a string to max length.

    Args:
        s: String to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated string
    """
    if len(s) <= max_length:
        return s
    return s[:max_length - len(suffix)] + suffix


def pluralize(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"
