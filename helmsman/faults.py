"""
Helmsman faults: the error taxonomy of the dispatch engine and its rendering.

Scope
- FaultCode: stable numeric identifiers for every fault, grouped by domain.
- DispatchError: base type carrying a message + options; knows how to render
  itself through rich (header, message, hint), optionally colorful and fancy.
- UsageSignal and its variants: errors that ask for usage to be displayed at
  the level where they were decided.
  • HelpRequested: the user asked for help or gave no subcommand.
  • ShowUsage: raised or wrapped by application code (raise X from ShowUsage()).
  • UnknownCommandError: the first positional did not name a child.
  • FlagError: a flag set rejected a token.
- StructuralError: the application wired its command tree wrong. This is not
  a user input problem and is deliberately outside the UsageSignal family.
- requests_usage(): inspect an error (and its explicit cause chain) for a
  usage signal, without ever comparing message text.
- render(): print a fault to a rich console.

Rendering hooks
- A host application can define __styles__ (palette overrides) and __prog__
  (program name shown in headers) in its __main__ module.
"""
import os.path
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used by the dispatch engine (stable identifiers).

    grouping
    - usage signals (111xx)
      • HELP_REQUESTED, SHOW_USAGE, UNKNOWN_COMMAND
    - flag parsing (112xx)
      • MALFORMED_FLAG, UNKNOWN_FLAG, MISSING_VALUE, INVALID_VALUE
    - wiring (113xx)
      • UNSUPPORTED_DIRECTIVE, DEPTH_EXCEEDED
    """
    # --- usage signals (111xx) ---
    HELP_REQUESTED        = 11101
    SHOW_USAGE            = 11102
    UNKNOWN_COMMAND       = 11103

    # --- flag parsing (112xx) ---
    MALFORMED_FLAG        = 11201
    UNKNOWN_FLAG          = 11202
    MISSING_VALUE         = 11203
    INVALID_VALUE         = 11204

    # --- wiring (113xx) ---
    UNSUPPORTED_DIRECTIVE = 11301
    DEPTH_EXCEEDED        = 11302

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(sys.modules["__main__"], "__codes__", {}).get(self, self.value))


class DispatchError(Exception):
    """
    Base class of every fault raised by the dispatch engine.

    The message is kept verbatim (an empty message is allowed so the error can
    be wrapped without polluting the wrapper's text); any extra keyword options
    are kept read-only for renderers (hint, prog, colorful, fancy, ...).
    """
    code = Unset
    title = "dispatch error"

    def __init__(self, message="", /, **options):
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__} message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    def renderable(self, **overrides):
        """
        Build the rich renderable for this fault.

        Options (from the fault, overridden by keyword arguments)
        - prog: program label; defaults to __main__.__prog__ or the script name.
        - hint: one-line actionable hint.
        - colorful: style the output (default True).
        - fancy: wrap the output in a panel (default False).
        """
        options = self.options | overrides
        main = sys.modules["__main__"]
        colorful = options.get("colorful", True)

        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(main, "__styles__", {}))

        def text(fragment, style):
            return Text(str(fragment), styles[style] if colorful else "")

        prog = coalesce(options.get("prog", Unset), getattr(main, "__prog__", os.path.basename(sys.argv[0])))
        code = self.code.normalize() if isinstance(self.code, FaultCode) else "-"

        header = Text.assemble(
            "[ ",
            text(prog, "prog-name"),
            " — ",
            text(code, "code"),
            " | ",
            text(self.title.title(), "error-title"),
            " ]",
        )
        parts = [text(self.message or self.title, "error-message")]
        if hint := options.get("hint"):
            parts.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

        if options.get("fancy", False):
            return Panel(Group(*parts), title=header, title_align="left")
        return Group(header, *parts)

    def __rich__(self):
        return self.renderable()


class UsageSignal(DispatchError):
    """
    Base of the errors that request usage display.

    The rendered marker is flipped by the node that displays usage so that no
    ancestor displays it a second time for the same signal; it is cleared again
    when the invocation ends, so one instance can be raised by many runs.
    """
    title = "show usage"

    def __init__(self, message="", /, **options):
        super().__init__(message, **options)
        self.rendered = False


class HelpRequested(UsageSignal):
    code = FaultCode.HELP_REQUESTED
    title = "help requested"

    def __init__(self, message="help requested", /, **options):
        super().__init__(message, **options)


class ShowUsage(UsageSignal):
    """
    Raise, or chain with ``raise ... from ShowUsage()``, to display the usage
    of the level that observes it even though help was not requested.

    The default message is empty so wrapping does not alter the wrapper's text.
    """
    code = FaultCode.SHOW_USAGE


class UnknownCommandError(UsageSignal):
    code = FaultCode.UNKNOWN_COMMAND
    title = "unknown command"

    def __init__(self, token, /, **options):
        if not isinstance(token, str):
            raise TypeError("UnknownCommandError token must be a string")
        super().__init__("unknown command %r" % token, **options)
        self.token = token


class FlagError(UsageSignal):
    """
    A flag set rejected a token. Carries the offending flag name when known.
    """
    code = FaultCode.INVALID_VALUE
    title = "bad flag"

    def __init__(self, message, /, *, flag=None, code=Unset, **options):
        super().__init__(message, **options)
        self.flag = flag
        if code is not Unset:
            self.code = FaultCode(code)


class StructuralError(DispatchError, TypeError):
    """
    The command tree is wired wrong (unsupported child type, or a traversal
    deeper than the supported depth). A programmer error, not a user one;
    it is also a TypeError, like any other construction-time misuse.
    """
    code = FaultCode.UNSUPPORTED_DIRECTIVE
    title = "bad command tree"

    def __init__(self, message, /, *, code=Unset, **options):
        super().__init__(message, **options)
        if code is not Unset:
            self.code = FaultCode(code)


def signal_of(error, /):
    """
    Return the first UsageSignal in the explicit cause chain of error, or None.

    Only __cause__ is followed (``raise X from Y``); an implicit __context__
    is an accident of where the error was raised, not a request for usage.
    """
    seen = set()
    while isinstance(error, BaseException) and id(error) not in seen:
        if isinstance(error, UsageSignal):
            return error
        seen.add(id(error))
        error = error.__cause__
    return None


def requests_usage(error, /):
    """
    Report whether error asks for usage display (directly or wrapped).
    """
    return signal_of(error) is not None


def render(fault, /, *, output=Unset, **options):
    """
    Print a fault to the given rich console (stderr by default).
    """
    if not isinstance(fault, DispatchError):
        raise TypeError("render() argument must be a dispatch error")
    coalesce(output, console).print(fault.renderable(**options))


__all__ = (
    "FaultCode",
    "DispatchError",
    "UsageSignal",
    "HelpRequested",
    "ShowUsage",
    "UnknownCommandError",
    "FlagError",
    "StructuralError",
    "signal_of",
    "requests_usage",
    "render",
)
