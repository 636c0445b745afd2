"""
Exceptions raised by playwright-hog.

Assertion failures use the builtin AssertionError; HogUsageError marks a
caller mistake (bad timeout, malformed expected properties, ...) and is raised
before any waiting starts.
"""


class HogUsageError(ValueError):
    """
    Raised when an assertion or session is used with invalid arguments.
    """
