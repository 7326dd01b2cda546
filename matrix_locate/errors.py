"""Exceptions raised by the locator pipeline."""


class MatrixLocateError(Exception):
    """Base error for the package."""
    pass


class ImageDecodeError(MatrixLocateError):
    """Image file or buffer could not be decoded."""
    pass


class InvalidImageError(MatrixLocateError):
    """Decoded image is unusable (empty, wrong dtype or channel count)."""
    pass


class ConfigError(MatrixLocateError):
    """Detector configuration is malformed."""
    pass


class CandidateMaterializationError(MatrixLocateError):
    """A surviving candidate region could not be cropped out of the image."""
    pass


class OutputWriteError(MatrixLocateError):
    """A crop or overlay image could not be written to disk."""
    pass
