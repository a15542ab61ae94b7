"""Media device errors (importable without loading device bindings)."""


class MediaAcquisitionError(Exception):
    """Raised when a microphone, speaker or camera cannot be opened."""
