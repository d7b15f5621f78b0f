"""RKA upload parsers package.

Public API
----------
BaseParser   Abstract base; inherit to create a new upload parser.
ParseResult  Dataclass returned by every ``parser.parse()`` call.
RkaParser    Budget plan rows (program > kegiatan > sub-kegiatan > akun).

Usage example::

    from npd_tracker.parsers import RkaParser

    result = RkaParser(content, filename="rka_2026.csv").parse()
    print(result.summary())
"""

from .base_parser import BaseParser, ParseResult
from .rka_parser import FORMAT_RKA, RkaParser

__all__: list[str] = [
    "BaseParser",
    "ParseResult",
    "RkaParser",
    "FORMAT_RKA",
]
