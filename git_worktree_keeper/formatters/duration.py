"""Duration and age formatting utilities."""


def format_duration(seconds: float) -> str:
    """
    Format a duration in whole days, hours or minutes.

    Args:
        seconds: Duration in seconds

    Returns:
        The largest non-zero unit, e.g. "3 days", "5 hours" or "12 minutes"
    """
    seconds = int(max(0, seconds))
    hours = seconds // 3600
    days = hours // 24

    if days > 0:
        return f"{days} days"
    if hours > 0:
        return f"{hours} hours"
    return f"{seconds // 60} minutes"


def format_age(seconds: float) -> str:
    """Compact age for table cells: 3d, 5h or 12m."""
    seconds = int(max(0, seconds))
    if seconds >= 86400:
        return f"{seconds // 86400}d"
    if seconds >= 3600:
        return f"{seconds // 3600}h"
    return f"{seconds // 60}m"
