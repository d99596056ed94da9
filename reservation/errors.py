"""Exceptions raised by wizard commands.

These signal a malformed command (an id that does not exist, a slider value
outside its track). The session is left untouched when one is raised.
Ordinary validation failures, like a missing email, are not exceptions:
they block ``WizardSession.next()`` and are reported by
``WizardSession.validation_errors()``.
"""


class WizardError(Exception):
    """Base class for rejected wizard commands."""


class UnknownServiceError(WizardError):
    pass


class UnknownCounterError(WizardError):
    pass


class UnknownCountryError(WizardError):
    pass


class InvalidHoursError(WizardError):
    pass


class SlotUnavailableError(WizardError):
    """The slot is not in the latest fetched list, or is marked unavailable."""


class InvalidStepError(WizardError):
    """The command is not allowed on the current step."""


class InvalidSuggestionError(WizardError):
    """The suggestion index does not match the list currently shown."""


class InvalidDateError(WizardError):
    """Cleaning dates cannot be in the past."""
