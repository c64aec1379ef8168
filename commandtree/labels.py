"""
Segments and the path grammar.

A command path is an ordered sequence of segments; a segment is a set of interchangeable
aliases. Matching is case-insensitive, so a Segment keeps two views of its aliases:
- the aliases as given (ordered, first one is canonical, used for display and routes);
- their case-folded forms (a frozenset, used for equality, hashing and matching).

Grammar (string form)
- whitespace separates segments:          "economy give"
- '|' separates aliases inside a segment: "economy give|g"
- neither whitespace nor '|' may appear inside an alias.

Examples
    >>> parse("economy give|g")
    (Segment('economy'), Segment('give', 'g'))
    >>> Segment("Give", "g") == Segment("give", "G")
    True
"""
import logging
import re
from collections.abc import Iterable, Mapping, Set
from typing import final

from .faults import FaultCode, InvalidArgumentError

logger = logging.getLogger(__name__)

SEPARATOR = " "
DELIMITER = "|"


def _validate(alias):
    if not isinstance(alias, str):
        raise TypeError(f"alias must be a string, not {type(alias).__name__!r}")
    if not alias:
        raise InvalidArgumentError(
            "empty alias",
            title="invalid argument",
            code=FaultCode.INVALID_ARGUMENT,
            hint="every alias needs at least one character",
        )
    if DELIMITER in alias or re.search(r"\s", alias):
        raise InvalidArgumentError(
            f"alias {alias!r} contains a reserved character",
            title="malformed path",
            code=FaultCode.MALFORMED_PATH,
            label=alias,
            hint="separate segments with spaces and aliases with %r" % DELIMITER,
        )
    return alias


@final
class Segment(Set):
    """
    Immutable, hashable set of case-insensitive aliases for one path position.

    Two segments are equal when their case-folded aliases are equal; membership
    (label in segment) is case-insensitive as well. Iteration yields the aliases in
    the order they were given, duplicates (case-insensitively) dropped.
    """

    __slots__ = ("_aliases", "_folded")

    def __init__(self, *aliases):
        unique = {}
        for alias in aliases:
            unique.setdefault(_validate(alias).casefold(), alias)
        if not unique:
            raise InvalidArgumentError(
                "segment without aliases",
                title="invalid argument",
                code=FaultCode.INVALID_ARGUMENT,
                hint="give each path segment at least one alias",
            )
        self._aliases = tuple(unique.values())
        self._folded = frozenset(unique)

    @classmethod
    def _from_iterable(cls, iterable):
        # set operators (&, |, -) produce plain frozensets of aliases
        return frozenset(iterable)

    @property
    def name(self):
        """The canonical (first) alias."""
        return self._aliases[0]

    @property
    def aliases(self):
        return self._aliases

    def matches(self, label):
        return isinstance(label, str) and label.casefold() in self._folded

    def intersects(self, other):
        return not self._folded.isdisjoint(other._folded)

    def __contains__(self, label):
        return self.matches(label)

    def __iter__(self):
        return iter(self._aliases)

    def __len__(self):
        return len(self._aliases)

    def __eq__(self, other):
        if not isinstance(other, Segment):
            return NotImplemented
        return self._folded == other._folded

    def __hash__(self):
        return hash(self._folded)

    def __str__(self):
        return DELIMITER.join(self._aliases)

    def __repr__(self):
        return f"Segment({", ".join(map(repr, self._aliases))})"

    def __rich_repr__(self):
        yield from self._aliases


def parse(structure, /):
    """
    Split a path string into segments.

    parse("economy give|g") -> (Segment('economy'), Segment('give', 'g'))

    Raises
    - TypeError when structure is not a string.
    - InvalidArgumentError on an empty path or a malformed segment ("a||b").
    """
    if not isinstance(structure, str):
        raise TypeError("parse() argument must be a string")
    path = tuple(Segment(*part.split(DELIMITER)) for part in structure.split())
    if not path:
        raise InvalidArgumentError(
            "empty command path",
            title="invalid argument",
            code=FaultCode.INVALID_ARGUMENT,
            hint="a path needs at least one segment, e.g. 'economy give|g'",
        )
    return path


def segments(path, /):
    """
    Normalize any accepted path shape into a tuple of Segments.

    Accepted shapes
    - str: parsed with the grammar (see parse()).
    - Segment: a single-segment path.
    - Iterable whose items are Segments, alias strings (may use '|') or iterables of
      alias strings.

    Unordered containers (sets, mappings) are rejected: segment order is the path.
    """
    if isinstance(path, str):
        return parse(path)
    if isinstance(path, Segment):
        return (path,)
    if not isinstance(path, Iterable):
        raise TypeError(f"path must be a string or an iterable of segments, not {type(path).__name__!r}")
    if isinstance(path, (Set, Mapping)):
        raise TypeError(f"path segments must be ordered, not a {type(path).__name__!r}")

    result = []
    for item in path:
        if isinstance(item, Segment):
            result.append(item)
        elif isinstance(item, str):
            result.append(Segment(*item.split(DELIMITER)))
        elif isinstance(item, Iterable):
            result.append(Segment(*item))
        else:
            raise TypeError(f"path segment must be a string or an iterable of aliases, not {type(item).__name__!r}")
    if not result:
        raise InvalidArgumentError(
            "empty command path",
            title="invalid argument",
            code=FaultCode.INVALID_ARGUMENT,
            hint="a path needs at least one segment",
        )
    logger.debug("normalized path %s", SEPARATOR.join(map(str, result)))
    return tuple(result)


__all__ = (
    "Segment",
    "parse",
    "segments",
    "SEPARATOR",
    "DELIMITER",
)
