"""Utility functions for the project services."""
import os
import sys

from loguru import logger

_configured = False


def get_logger(log_name="default"):
    """
    Configure and return a logger instance with a name.
    """
    global _configured
    if not _configured:
        logger.remove()
        logger.configure(extra={"name": log_name})
        logger.add(
            sys.stdout,
            format="{extra[name]} | <green>{time}</green> | <level>{level}</level> | {message}",
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            colorize=True,
        )
        _configured = True
    return logger.bind(name=log_name)


class StringList(list):
    """An ordered list of names (projects, datasets, tables, buckets, files)."""

    def contains(self, text: str) -> bool:
        """Exact, case-sensitive membership test."""
        for item in self:
            if item == text:
                return True
        return False

    def sorted(self) -> "StringList":
        """Sort ascending in place and return the same list."""
        self.sort()
        return self

    def __str__(self) -> str:
        return ", ".join(self)


def collect_names(iterator, attribute: str) -> StringList:
    """Drain a paginated SDK iterator page by page into a StringList.

    Parameters
    ----------
    iterator
        A ``google.api_core`` page iterator (anything exposing ``pages``).
    attribute : str
        Attribute read from every item, e.g. ``"table_id"`` or ``"name"``.
    """
    names = StringList()
    for page in iterator.pages:
        names.extend(getattr(item, attribute) for item in page)
    return names
