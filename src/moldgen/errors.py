"""Custom exception hierarchy for moldgen."""


class MoldgenError(Exception):
    """Base exception for all moldgen errors."""


class ParseError(MoldgenError):
    """Raised when settings YAML parsing or schema deserialization fails."""


class ValidationError(MoldgenError):
    """Raised when semantic validation of a grid layout fails."""


class GeometryError(MoldgenError):
    """Raised when a cell cannot be turned into a sample grid."""


class LayoutError(MoldgenError):
    """Raised when a grid variant has no tiling strategy."""


class ExportError(MoldgenError):
    """Raised when OBJ/STL export fails."""
