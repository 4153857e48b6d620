"""Exception hierarchy shared by the store, repository and content generator."""


class HzcliError(Exception):
    """Base class for every error surfaced to the command line."""

    pass


class NotFoundError(HzcliError):
    """Raised when a deck, word or file does not exist."""

    pass


class AlreadyExistsError(HzcliError):
    """Raised when adding a deck, word or file that already exists."""

    pass


class ProtectedError(HzcliError):
    """Raised when attempting to remove the default deck."""

    pass


class ArgumentError(HzcliError):
    """Raised for invalid or conflicting arguments."""

    pass


class CorruptedError(HzcliError):
    """Raised when persisted content is empty, unparseable or missing."""

    pass


class InvalidStateError(HzcliError):
    """Raised when an operation would persist an invalid state."""

    pass


class AuthRequiredError(HzcliError):
    """Raised when a generator call is made without an API key."""

    pass


class NoResultError(HzcliError):
    """Raised when the generator could not produce meaningful content."""

    pass


class GenerationError(HzcliError):
    """Raised when the content generator request fails."""

    pass


class MalformedResponseError(GenerationError):
    """Raised when the generator response cannot be parsed."""

    pass
