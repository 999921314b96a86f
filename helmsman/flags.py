r"""
Helmsman flag sets: the token-level parsing collaborator bound to every node.

Overview
- Specs
  • Option[_T]: named, value-bearing option (``-name value`` or ``-name=value``).
  • Flag: named boolean switch (``-name`` or ``-name=false``).
- FlagSet
  • A named registry of specs plus a binding namespace. Defining a spec writes
    its default into the namespace; parsing overwrites it with the user value.
  • parse(tokens) consumes leading flags and keeps the remainder as args.
  • usage is a settable renderer callback; the default prints the flag defaults
    through rich.
  • Iterating a flag set yields every defined spec sorted by name.
  • derive(name) and copy.copy(flags) support the inherit and pass-through
    patterns used by commands.

Token grammar
- One or two leading dashes introduce a flag: ``-v``, ``--verbose``.
- ``--`` ends flag parsing and is consumed; ``-`` alone is a positional.
- The first token that is not a flag stops parsing; it and everything after
  it are the positional args.
- ``-h`` and ``-help`` (and ``--help``) request help unless the set defines them.

Error handling
- ErrorHandling.RAISE: parse failures raise FlagError / HelpRequested to the
  caller, which decides where usage is displayed.
- ErrorHandling.EXIT: parse failures print the error and usage, then exit the
  process with status 0 for help requests and 2 otherwise.

Quick example:
    >>> flags = FlagSet("tool")
    >>> flags.option("threads", type=int, default=1, descr="worker count")
    ...
    >>> flags.parse(["-threads=4", "build", "-x"])
    ['build', '-x']
    >>> flags.namespace.threads
    4
"""
import re
import sys
from enum import Enum
from types import MappingProxyType, SimpleNamespace
from typing import Generic, TypeVar

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .faults import FaultCode, FlagError, HelpRequested, DispatchError, render
from .utils import *

console = Console(stderr=True)

_TRUTHY = frozenset({"1", "t", "true", "yes", "on"})
_FALSY = frozenset({"0", "f", "false", "no", "off"})


def _parse_bool(value, /):
    """
    Convert a boolean literal (case-insensitive) or raise ValueError.
    """
    if (lowered := value.strip().lower()) in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError("invalid boolean literal %r" % value)


def _validate_name(cls, name, /):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__name__} name must be a string")
    if not re.fullmatch(r"(?!-)[^=\s]+", name):
        raise ValueError(f"{cls.__name__} name {name!r} must be non-empty and cannot start with '-' or contain '=' or spaces")
    return name


_T = TypeVar("_T")


class Option(Generic[_T]):
    """
    Named, value-bearing option.

    Parameters
    - name: str (without dashes); also the default binding attribute, with '-'
      mapped to '_'.
    - type: Callable[[str], _T] converting the raw token; a ValueError or
      TypeError from it becomes a FlagError at parse time.
    - default: value written into the namespace when the option is defined.
    - descr: one-line description for usage output.
    - metavar: placeholder shown in usage (defaults to the converter's name).
    - dest: override the binding attribute.
    """
    __introspectable__ = ("name", "type", "default", "descr", "metavar", "dest")

    def __init__(self, name, /, type=str, default=None, descr=None, *, metavar=None, dest=None):
        if not callable(type):
            raise TypeError(f"{self.__class__.__name__} 'type' must be callable")
        if descr is not None and not isinstance(descr, str | Text):
            raise TypeError(f"{self.__class__.__name__} 'descr' must be a string")
        if metavar is not None and not (isinstance(metavar, str) and metavar.strip()):
            raise ValueError(f"{self.__class__.__name__} 'metavar' must be a non-empty string")
        if dest is not None and not (isinstance(dest, str) and dest.isidentifier()):
            raise ValueError(f"{self.__class__.__name__} 'dest' must be an identifier")
        self.name = _validate_name(self.__class__, name)
        self.type = type
        self.default = default
        self.descr = descr
        self.metavar = metavar
        self.dest = dest or name.replace("-", "_")

    @property
    def label(self):
        """
        Placeholder shown after the option name in usage output.
        """
        return self.metavar or getattr(self.type, "__name__", "value")

    def convert(self, value, /):
        return self.type(value)

    def __rich_repr__(self):
        for name in self.__introspectable__:
            yield name, getattr(self, name)

    def __repr__(self):
        return "%s(%s)" % (
            self.__class__.__name__.lower(),
            ", ".join("%s=%r" % pair for pair in self.__rich_repr__()),
        )


class Flag(Option[bool]):
    """
    Named boolean switch. Presence sets True; an inline literal sets its value.
    """
    __introspectable__ = ("name", "default", "descr", "dest")

    def __init__(self, name, /, default=False, descr=None, *, dest=None):
        super().__init__(name, _parse_bool, bool(default), descr, dest=dest)

    @property
    def label(self):
        return ""


class ErrorHandling(Enum):
    """
    What FlagSet.parse does on failure: raise to the caller, or exit.
    """
    RAISE = "raise"
    EXIT = "exit"


class FlagSet:
    """
    Named set of options bound to a namespace.

    Parameters
    - name: str, shown in usage output ("usage of <name>:").
    - handling: ErrorHandling, RAISE by default.
    - descr: optional description used by usage renderers.
    - namespace: object receiving the bound values (a SimpleNamespace by default).
    - output: rich Console used by usage renderers (stderr by default).

    State
    - args: positional tokens left over by the last parse.
    - parsed: whether parse has been called.
    - actual: read-only mapping of the names set by the last parse.
    """

    def __init__(self, name, handling=ErrorHandling.RAISE, /, *, descr=None, namespace=Unset, output=Unset):
        if not isinstance(name, str):
            raise TypeError("FlagSet name must be a string")
        if not isinstance(handling, ErrorHandling):
            raise TypeError("FlagSet handling must be an ErrorHandling member")
        self._name = name
        self._handling = handling
        self.descr = descr
        self.namespace = coalesce(namespace, SimpleNamespace())
        self.output = coalesce(output, console)
        self._formal = {}
        self._actual = {}
        self._args = []
        self._parsed = False
        self._usage = Unset

    @property
    def name(self):
        return self._name

    @property
    def handling(self):
        return self._handling

    @property
    def args(self):
        return list(self._args)

    @property
    def parsed(self):
        return self._parsed

    @property
    def actual(self):
        return MappingProxyType(self._actual)

    @property
    def usage(self):
        """
        The usage renderer: a zero-argument callable. Defaults to print_usage.
        """
        return coalesce(self._usage, self.print_usage)

    @usage.setter
    def usage(self, renderer):
        if not callable(renderer):
            raise TypeError("FlagSet usage must be callable")
        self._usage = renderer

    @property
    def custom_usage(self):
        """
        Whether a renderer other than the default has been installed.
        """
        return self._usage is not Unset

    def add(self, spec, /):
        """
        Register a spec and write its default into the namespace.
        """
        if not isinstance(spec, Option):
            raise TypeError("FlagSet.add() argument must be an option or a flag")
        if spec.name in self._formal:
            raise ValueError("%s flag redefined: %s" % (self._name, spec.name))
        self._formal[spec.name] = (spec, self.namespace)
        setattr(self.namespace, spec.dest, spec.default)
        return spec

    def option(self, name, /, type=str, default=None, descr=None, *, metavar=None, dest=None):
        return self.add(Option(name, type, default, descr, metavar=metavar, dest=dest))

    def flag(self, name, /, default=False, descr=None, *, dest=None):
        return self.add(Flag(name, default, descr, dest=dest))

    def lookup(self, name, /):
        try:
            return self._formal[name][0]
        except KeyError:
            return None

    def __iter__(self):
        return iter([self._formal[name][0] for name in sorted(self._formal)])

    def __len__(self):
        return len(self._formal)

    def __contains__(self, name):
        return name in self._formal

    def __getitem__(self, name):
        spec, target = self._formal[name]
        return getattr(target, spec.dest)

    def set(self, name, value, /):
        """
        Convert value with the spec's converter and bind it.

        Raises
        - FlagError: unknown name or conversion failure.
        """
        try:
            spec, target = self._formal[name]
        except KeyError:
            raise FlagError("no such flag -%s" % name, flag=name, code=FaultCode.UNKNOWN_FLAG) from None
        try:
            converted = spec.convert(value)
        except (TypeError, ValueError) as error:
            raise FlagError(
                "invalid value %r for flag -%s: %s" % (value, name, error),
                flag=name,
                code=FaultCode.INVALID_VALUE,
            ) from None
        setattr(target, spec.dest, converted)
        self._actual[name] = converted

    def derive(self, name, handling=Unset, /, *, descr=None):
        """
        Return a new flag set that carries every option of this one.

        Options added to the derived set do not leak into this one; inherited
        options keep writing into their original namespace. The usage renderer
        is reset to the default.
        """
        derived = FlagSet(
            name,
            coalesce(handling, self._handling),
            descr=descr,
            namespace=self.namespace,
            output=self.output,
        )
        derived._formal = dict(self._formal)
        return derived

    def __copy__(self):
        """
        Unparsed snapshot sharing options, namespace and renderer, with its
        own registry so additions stay local.
        """
        clone = FlagSet(self._name, self._handling, descr=self.descr, namespace=self.namespace, output=self.output)
        clone._formal = dict(self._formal)
        clone._usage = self._usage
        return clone

    def parse(self, tokens, /):
        """
        Parse leading flags from tokens and return the leftover positionals.

        Every call resets args and actual. Values already bound in the
        namespace are left alone: an option absent from tokens keeps whatever
        the last parse (or its definition) wrote. The namespace can be shared
        with parent and derived sets, so resetting it here would clobber them.
        """
        if isinstance(tokens, str):
            raise TypeError("FlagSet.parse() argument must be an iterable of strings, not a string")
        tokens = list(tokens)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("FlagSet.parse() argument must be an iterable of strings")

        self._parsed = True
        self._actual.clear()
        self._args = []
        try:
            index = self._consume(tokens)
        except DispatchError as error:
            if self._handling is ErrorHandling.EXIT:
                self._exit(error)
            raise
        self._args = tokens[index:]
        return list(self._args)

    def _consume(self, tokens):
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if len(token) < 2 or token[0] != "-":
                break
            dashes = 2 if token[1] == "-" else 1
            if dashes == 2 and len(token) == 2:
                index += 1  # "--" terminates the flags
                break
            body = token[dashes:]
            if not body or body[0] in "-=":
                raise FlagError("bad flag syntax: %s" % token, code=FaultCode.MALFORMED_FLAG)

            name, separator, value = body.partition("=")
            spec = self.lookup(name)
            if spec is None:
                if name in ("h", "help"):
                    raise HelpRequested()
                raise FlagError("flag provided but not defined: -%s" % name, flag=name, code=FaultCode.UNKNOWN_FLAG)

            if isinstance(spec, Flag):
                self.set(name, value if separator else "true")
            else:
                if not separator:
                    if index + 1 >= len(tokens):
                        raise FlagError("flag needs an argument: -%s" % name, flag=name, code=FaultCode.MISSING_VALUE)
                    index += 1
                    value = tokens[index]
                self.set(name, value)
            index += 1
        return index

    def _exit(self, error):
        if not isinstance(error, HelpRequested):
            render(error, output=self.output)
        self.usage()
        sys.exit(0 if isinstance(error, HelpRequested) else 2)

    def defaults(self):
        """
        Build a borderless table of every spec: names, placeholders, descriptions
        and non-zero defaults.
        """
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        for spec in self:
            names = Text.assemble(("-" + spec.name, "bold #00E6FF"))
            if spec.label:
                names.append(" ").append(spec.label, "#FFD600")
            descr = Text(str(spec.descr or ""))
            if spec.default not in (None, False, "", 0):
                descr.append(" (default %r)" % (spec.default,), "dim")
            table.add_row(names, descr)
        return table

    def print_defaults(self):
        if self._formal:
            self.output.print(self.defaults())

    def print_usage(self):
        """
        Default usage renderer: header, description, flag defaults.
        """
        self.output.print(Text.assemble(("usage of ", "bold #00E6FF"), (self._name, "bold #FF4D94"), ":"))
        if self.descr:
            self.output.print(Text(str(self.descr), "italic #A3A3A3"))
        self.print_defaults()

    def __repr__(self):
        return "flag-set(name=%r, handling=%s, flags=%r)" % (self._name, self._handling.name, sorted(self._formal))


__all__ = (
    "Option",
    "Flag",
    "ErrorHandling",
    "FlagSet",
)
