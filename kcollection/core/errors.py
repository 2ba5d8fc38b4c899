"""Exception types raised by kcollection."""


class KCollectionError(Exception):
    """Base class for kcollection errors."""


class InvalidRecordState(KCollectionError):
    """Raised when a record cannot be used in its current state.

    The only case today is adding raw data whose source record has
    already been destroyed.
    """
