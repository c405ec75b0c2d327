"""
Source-file driver
Parses top-level units lazily and hands each one to an external visitor in order
"""

import logging
from typing import Any, Callable, Iterator, Optional

from nodes import Node
from parsing import Parser, create_debug_parser, create_parser

logger = logging.getLogger(__name__)

Visitor = Callable[[Node, Any], Any]


class _NoResult:
    """Result of running a source with no top-level units"""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_RESULT"

    def __reduce__(self):
        return (_NoResult, ())


NO_RESULT = _NoResult()


class SourceDriver:
    """Runs a visitor (typically an evaluator) over every top-level unit

    Units are parsed one at a time: a failing visitor stops the run before
    the next unit is parsed, and a syntax error only surfaces once the
    driver reaches the broken unit.
    """

    def __init__(self, parser: Optional[Parser] = None, filename: str = "<input>"):
        self.parser = parser or create_parser(filename=filename)

    def units(self, text: str) -> Iterator[Node]:
        return self.parser.iter_units(text)

    def run(self, text: str, visitor: Visitor, environment: Any = None) -> Any:
        result = NO_RESULT
        filename = self.parser.filename
        for index, unit in enumerate(self.units(text), 1):
            logger.debug("%s: visiting unit %d", filename, index)
            try:
                result = visitor(unit, environment)
            except Exception as e:
                logger.warning("%s: visitor failed on unit %d: %s", filename, index, e)
                raise
        return result


def create_driver(debug: bool = False, filename: str = "<input>") -> SourceDriver:
    """Create a driver, optionally over a debug parser"""
    parser = create_debug_parser(filename) if debug else create_parser(filename=filename)
    return SourceDriver(parser)


def run_source(text: str, visitor: Visitor, environment: Any = None, filename: str = "<input>") -> Any:
    """Visit every top-level unit of text in order

    Returns the last visitor result, or NO_RESULT when the text holds no
    units. The first exception (from parsing or from the visitor) propagates
    unchanged and nothing after it is parsed or visited.
    """
    return SourceDriver(filename=filename).run(text, visitor, environment)
