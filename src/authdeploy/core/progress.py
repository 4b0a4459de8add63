"""Progress indicators for long-running waits."""

from contextlib import contextmanager
from typing import Generator

from rich.console import Console

console = Console()


@contextmanager
def spinner(
    message: str,
    enabled: bool = True,
    out: Console | None = None,
) -> Generator[None, None, None]:
    """Show a spinner while a blocking call runs.

    Args:
        message: Message to display while spinning
        enabled: Disable for quiet or non-interactive output
        out: Console to draw on

    Yields:
        Nothing - just displays spinner during operation
    """
    if not enabled:
        yield
        return

    status = (out or console).status(message, spinner="dots")
    status.start()
    try:
        yield
    finally:
        status.stop()
