"""
commandtree faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every issue the tree can raise.
  Codes are grouped by domain (arguments, registration, linkage, lookup, warnings).
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves through rich.
- trigger(): central entry point to surface any fault (respecting shell/fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

Integration
- Tree operations build a fault and hand it to CommandNode.trigger(), which merges the
  node's runtime flags and calls trigger(fault, **options).
- Outside shell mode exceptions are raised and warnings go through warnings.warn; in
  shell mode both are rendered on stderr via rich and the operation is abandoned.
"""
import copy
import inspect
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the tree (stable identifiers).

    grouping
    - arguments (2110x): INVALID_ARGUMENT, MALFORMED_PATH
    - registration (2111x): DUPLICATE_COMMAND, DUPLICATE_ALIAS
    - linkage (2112x): INVALID_OPERATION
    - lookup (2113x): NO_SUCH_CHILD
    - warnings (22xxx): IGNORED_ALIASES

    normalize() lets the host remap codes to its own labels through a __codes__
    mapping in __main__.
    """
    # --- argument errors (21xxx) ---
    INVALID_ARGUMENT  = 21101
    MALFORMED_PATH    = 21102

    # --- registration errors (21xxx) ---
    DUPLICATE_COMMAND = 21111
    DUPLICATE_ALIAS   = 21112

    # --- linkage errors (21xxx) ---
    INVALID_OPERATION = 21121

    # --- lookup errors (21xxx) ---
    NO_SUCH_CHILD     = 21131

    # --- warnings (22xxx) ---
    IGNORED_ALIASES   = 22111

    def normalize(self):
        """
        return a host-normalized string for this code.

        when __main__ defines no __codes__ mapping the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette):
    """
    build a rich renderable for a fault (shared by errors and warnings).

    layout
    - header: [ prog — code | title ]
    - body: the message, then an arrow and the hint when one is given.
    - fancy mode wraps body in a Panel titled with the header.
    """
    main = __import__("__main__")
    options = fault.options
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))
    colorful = options.get("colorful", False)

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style])

    node = options.get("node")
    prog = getattr(main, "__prog__", node.root.label if node is not None else "commandtree")
    code = options.get("code")

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " — ",
        text(code.normalize() if code is not None else "?", "code"),
        " | ",
        text(str(options.get("title", type(fault).__name__)).title(), "title"),
        " ]"
    )
    message = text(fault.message, "message")
    body = [message]
    if hint := options.get("hint"):
        body.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

    if options.get("fancy", False):
        return Panel(Group(*body), title=header, title_align="left")
    return Group(header, *body)


class CommandException(Exception):
    """
    base error for tree faults.

    options are read-only and usually include: code, title, hint, and the context of
    the failure (label, route, node). rendering flags (shell/fancy/colorful) are merged
    in by trigger().
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "title": "bold #FF4DA6",  # friendly pinky title
            "message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class InvalidArgumentError(CommandException): ...
class DuplicateCommandError(CommandException): ...
class InvalidOperationError(CommandException): ...
class NoSuchChildError(CommandException): ...


class CommandWarning(Warning):
    """
    base warning for tree faults that do not abort the operation.
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",  # amber fault code for warnings
            "title": "bold #FFC2E0",
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        })

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class IgnoredAliasesWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace() before triggering.
    - errors are raised unless options["shell"] is true; in shell mode they are printed.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code from a __docs__ mapping in __main__.

    returns None when the host documents nothing for this code.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "InvalidArgumentError",
    "DuplicateCommandError",
    "InvalidOperationError",
    "NoSuchChildError",
    "CommandWarning",
    "IgnoredAliasesWarning",
    "FaultCode",
    "trigger",
    "getdoc",
)
