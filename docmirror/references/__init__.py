"""Citation extraction and resolution."""

from .extractor import CITATION_PATTERN, ReferenceExtractor
from .matching import AnchorMatch, WindowSearch
from .resolver import ReferenceResolver, read_source_lines

__all__ = [
    "AnchorMatch",
    "CITATION_PATTERN",
    "ReferenceExtractor",
    "ReferenceResolver",
    "WindowSearch",
    "read_source_lines",
]
