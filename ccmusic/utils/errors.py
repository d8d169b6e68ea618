"""Custom exceptions."""


class CcmusicError(Exception):
    """Base exception for ccmusic."""

    pass


class ToolProvisioningError(CcmusicError):
    """A required external tool could not be located, downloaded or extracted."""

    pass


class ConversionError(CcmusicError):
    """Error during audio conversion."""

    pass


class InvalidNameError(ConversionError):
    """Filename sanitizes to nothing usable."""

    pass
