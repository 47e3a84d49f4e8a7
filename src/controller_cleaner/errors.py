"""Error taxonomy for the cleanup engine."""


class CleanerError(Exception):
    """Base class for all cleanup engine errors."""


class ModelReadError(CleanerError):
    """The code model could not be read consistently.

    Raised during the read phase. Fatal to the current pass: analysis
    aborts and no mutation is attempted.
    """


class StaleSymbolError(CleanerError):
    """A symbol targeted for deletion no longer exists in its file.

    Recovered locally by the applier: the item is skipped and is not
    counted as a failure.
    """

    def __init__(self, identity, message: str = None):
        self.identity = identity
        super().__init__(message or f"Symbol no longer exists: {identity}")


class MutationError(CleanerError):
    """Deleting a valid symbol failed. Recorded per item in the report."""
