"""Exceptions and warnings raised by the renderer."""


class ConfigError(ValueError):
    """Raised when render parameters are invalid, before any sampling starts."""


class DimensionMismatch(ValueError):
    """Raised when grids or images that must share a shape do not."""


class EmptyHistogramWarning(UserWarning):
    """Issued when a histogram has no counts, usually a misplaced viewport."""
