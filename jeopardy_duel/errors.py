"""
Exceptions raised by the game core and its collaborators.
"""


class JeopardyError(Exception):
    """Base class for every error raised by the game."""


class InvalidSelection(JeopardyError):
    """A clue was selected that is already used, out of range, or while another clue is in play."""


class InvalidWager(JeopardyError):
    """A wager was outside the allowed range or submitted at the wrong time."""


class CaptureError(JeopardyError):
    """Speech capture failed to produce a transcript."""


class JudgmentUnavailable(JeopardyError):
    """The answer oracle could not be reached or returned garbage."""


class PersistenceFailure(JeopardyError):
    """Used clue ids could not be saved."""
