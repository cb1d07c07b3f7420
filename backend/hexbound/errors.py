"""
Exceptions raised inside the engine.
"""


class IllegalActionError(ValueError):
    """An intent that the current state does not allow.

    Raised by handlers and economy helpers; Game.step converts it into a
    False result plus a log entry, so it never escapes the engine.
    """
