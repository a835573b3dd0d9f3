"""Root of the rtmkit exception hierarchy.

Concrete exceptions live next to the code that raises them.
"""


class RTMError(Exception):
    """Base class for every exception raised by rtmkit."""
