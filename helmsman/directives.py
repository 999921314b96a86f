"""
Helmsman directive layer: build a tree of commands and dispatch tokens through it.

What this module provides
- Command: a leaf that derives its flag set from its parent's (setup) and
  performs a task once the flags are bound (run).
- Delegator: an interior node owning a flag set and a fixed mapping of child
  names to directives; it resolves the first positional token to a child.
- Root: the entry point; parses the top flags, runs an optional pre-dispatch
  hook, then hands control to the top delegator.
- Directive: the closed union Command | Delegator.
- invoke(root, prompt): convenience runner translating faults to exit codes.

Core ideas
- Each level parses only its own slice of tokens: a delegator's flag set stops
  at the first positional, which names the child; the child parses what
  follows its name.
- A command's setup receives a copy of its parent's flag set and chooses to
  inherit (parent.derive(name) plus new options), isolate (a fresh FlagSet) or
  pass it through unchanged.
- Usage is displayed exactly once per failure, by the most specific node that
  observes a usage signal (see faults.UsageSignal); ancestors see the signal
  marked as rendered and stay quiet. The error itself always propagates.

Preconditions
- A tree serves one invocation at a time. `selected` and flag-bound values are
  scoped to the running invocation; concurrent perform calls on the same tree
  are not supported.

Quick start
    from helmsman import Command, Delegator, FlagSet, Root, invoke

    flags = FlagSet("tool")
    root = Root(Delegator(
        "demo tool",
        flags=flags,
        children={
            "hello": Command("say hello", run=lambda context: print("hello")),
        },
    ))

    if __name__ == "__main__":
        invoke(root)
"""
import contextlib
import copy
import shlex
import sys
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from rich.box import ROUNDED
from rich.table import Table
from rich.text import Text

from .faults import *
from .flags import FlagSet
from .utils import *

HELP_MARKERS = frozenset({"-h", "-help", "--help", "help"})
"""First tokens that request help at any delegator level."""

DEPTH_LIMIT = 16
"""Deepest supported nesting of delegators; going further is a wiring defect."""


def _show_usage_once(error, flags):
    """
    Display flags' usage if error carries a usage signal nobody displayed yet.
    """
    signal = signal_of(error)
    if signal is None or signal.rendered:
        return
    signal.rendered = True
    flags.usage()


@contextlib.contextmanager
def _usage_scope(flags):
    """
    Resolve usage signals escaping the block at the level owning flags.
    """
    try:
        yield flags
    except Exception as error:
        _show_usage_once(error, flags)
        raise


@contextlib.contextmanager
def _invocation_scope(flags):
    """
    Outermost usage scope of one invocation.

    The rendered marker does not outlive the invocation: a signal instance
    raised again later (a module-level ShowUsage, for one) displays usage again.
    """
    try:
        with _usage_scope(flags):
            yield flags
    except Exception as error:
        if (signal := signal_of(error)) is not None:
            signal.rendered = False
        raise


class Command:
    """
    A leaf directive: performs a task.

    Parameters
    - descr: short, one-line description (see summary()).
    - setup: Callable[[FlagSet], FlagSet]. Receives a copy of the parent's flag
      set and returns the flag set to parse. Defaults to passing the copy
      through unchanged.
    - run: Callable[[context], Any]. Executes the task once flags are bound;
      its return value is handed back by perform() and Root.run().
    """

    def __init__(self, descr="", /, setup=Unset, run=Unset):
        if not isinstance(descr, str):
            raise TypeError("Command 'descr' must be a string")
        if setup is not Unset and not callable(setup):
            raise TypeError("Command 'setup' must be callable")
        if not callable(run):
            raise TypeError("Command 'run' must be callable")
        self._descr = descr
        self._setup = coalesce(setup, lambda flags: flags)
        self._run = run

    @property
    def descr(self):
        return self._descr

    @property
    def setup(self):
        return self._setup

    @property
    def run(self):
        return self._run

    def summary(self):
        """Short, one-line description."""
        return self._descr

    def bind(self, parent, tokens=(), /):
        """
        Derive this command's flag set from parent and parse tokens with it.

        The parent is copied first, so setup never mutates or re-parses the
        parent's own flag set. A parse failure displays the command's usage
        (once) and propagates; the returned flag set is ready for perform().
        """
        if not isinstance(parent, FlagSet):
            raise TypeError("Command.bind() first argument must be a flag set")
        flags = self._setup(copy.copy(parent))
        if not isinstance(flags, FlagSet):
            raise StructuralError(
                "command setup returned %s instead of a flag set" % type(flags).__name__,
                code=FaultCode.UNSUPPORTED_DIRECTIVE,
            )
        with _usage_scope(flags):
            flags.parse(tokens)
        return flags

    def perform(self, context=None, /):
        """Run the task; whatever run returns (or raises) is passed on unchanged."""
        return self._run(context)

    def __repr__(self):
        return "command(descr=%r)" % self._descr


class Delegator:
    """
    A parent to a set of directives. Its sole purpose is to direct traffic to
    a selected child; its flag set collects inputs shared with the children.

    Parameters
    - descr: short, one-line description.
    - flags: FlagSet owned by this node. Unless a custom usage renderer is
      already installed, print_usage is installed on it.
    - children: Mapping[str, Command | Delegator], frozen at construction.

    Attributes
    - selected: the child resolved by the current invocation, or None. Reset
      at the start of every perform().

    Note: one does not simply create too many layers of delegators; anything
    deeper than DEPTH_LIMIT is refused as a structural error.
    """

    def __init__(self, descr="", /, flags=Unset, children=Unset):
        if not isinstance(descr, str):
            raise TypeError("Delegator 'descr' must be a string")
        if not isinstance(flags, FlagSet):
            raise TypeError("Delegator 'flags' must be a flag set")
        if not isinstance(children := coalesce(children, {}), Mapping):
            raise TypeError("Delegator 'children' must be a mapping")
        for name, child in children.items():
            if not isinstance(name, str):
                raise TypeError("Delegator child names must be strings")
            if name in HELP_MARKERS:
                raise StructuralError(
                    "child name %r is reserved for help requests" % name,
                    code=FaultCode.UNSUPPORTED_DIRECTIVE,
                )
            if not isinstance(child, Directive):
                raise StructuralError(
                    "child %r has unsupported type %s" % (name, type(child).__name__),
                    code=FaultCode.UNSUPPORTED_DIRECTIVE,
                )
        self._descr = descr
        self._flags = flags
        self._children = MappingProxyType(dict(children))
        self.selected = None
        if not flags.custom_usage:
            flags.usage = self.print_usage

    @property
    def descr(self):
        return self._descr

    @property
    def flags(self):
        return self._flags

    @property
    def children(self):
        return self._children

    def summary(self):
        """Short, one-line description."""
        return self._descr

    def perform(self, context=None, /):
        """
        Resolve the first positional token to a child and hand control to it.

        Reads the positionals left over by this node's own flag set, so the
        flag set must have been parsed first (Root.run or the parent
        delegator does that).
        """
        with _invocation_scope(self._flags):
            return self._perform(context, 1)

    def _perform(self, context, depth):
        self.selected = None
        with _usage_scope(self._flags):
            return self._delegate(context, depth)

    def _delegate(self, context, depth):
        if depth > DEPTH_LIMIT:
            raise StructuralError(
                "command tree is deeper than %d levels" % DEPTH_LIMIT,
                code=FaultCode.DEPTH_EXCEEDED,
            )

        args = self._flags.args
        if not args:
            raise HelpRequested("no subcommand specified")
        token, rest = args[0], args[1:]
        if token in HELP_MARKERS:
            raise HelpRequested()
        try:
            child = self._children[token]
        except KeyError:
            raise UnknownCommandError(token) from None
        self.selected = child

        match child:
            case Command():
                flags = child.bind(self._flags, rest)
                with _usage_scope(flags):
                    return child.perform(context)
            case Delegator():
                with _usage_scope(child.flags):
                    child.flags.parse(rest)
                return child._perform(context, depth + 1)
            case _:
                raise StructuralError(
                    "unsupported directive of type %s" % type(child).__name__,
                    code=FaultCode.UNSUPPORTED_DIRECTIVE,
                )

    def describe_subcommands(self):
        """
        One line per child, "<name><padding>\\t<summary><padding>", sorted.
        """
        return sorted("%-20s\t%-40s" % (name, child.summary()) for name, child in self._children.items())

    def print_usage(self):
        """
        Default usage renderer: usage line, description, subcommands, flags.
        """
        output = self._flags.output
        output.print(Text.assemble(
            ("usage: ", "bold #00E6FF"),
            (self._flags.name, "bold #FF4D94"),
            (" [flags] <subcommand> [subflags]", "bold #36C5F0"),
        ))
        if self._descr:
            output.print(Text(self._descr, "italic #A3A3A3"))
        if self._children:
            table = Table("name", "help", title="subcommands", box=ROUNDED, title_style="bold", style="#4B5563")
            for name in sorted(self._children):
                table.add_row(Text(name, "bold #36C5F0"), Text(self._children[name].summary(), "#9CA3AF"))
            output.print(table)
        self._flags.print_defaults()

    def __repr__(self):
        return "delegator(descr=%r, flags=%r, children=%r)" % (self._descr, self._flags.name, sorted(self._children))


Directive = Command | Delegator


class Root:
    """
    Your main, top-level command.

    Parameters
    - delegator: the top Delegator (owned).
    - pre_perform: optional Callable[[context], Any] invoked by run() after the
      top flags are parsed but before a subcommand is chosen. If it raises,
      run() stops there; root usage is displayed only when the error requests
      it (faults.requests_usage).
    """

    def __init__(self, delegator, /, pre_perform=None):
        if not isinstance(delegator, Delegator):
            raise TypeError("Root 'delegator' must be a delegator")
        if pre_perform is not None and not callable(pre_perform):
            raise TypeError("Root 'pre_perform' must be callable")
        self._delegator = delegator
        self._pre_perform = pre_perform

    @property
    def delegator(self):
        return self._delegator

    @property
    def pre_perform(self):
        return self._pre_perform

    @property
    def flags(self):
        return self._delegator.flags

    def run(self, tokens, /, context=None):
        """
        Parse the top-level flags, then dispatch the positionals.

        Pass the process arguments without the program name (sys.argv[1:]).
        Returns whatever the selected command's run returns; every failure
        propagates unchanged after usage was displayed at the right level.
        """
        self._delegator.selected = None
        with _invocation_scope(self.flags):
            self.flags.parse(tokens)
            if self._pre_perform is not None:
                self._pre_perform(context)
            return self._delegator._perform(context, 1)

    def __repr__(self):
        return "root(delegator=%r)" % (self._delegator,)


def _tokenize(prompt):
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() prompt must be a string or an iterable of strings")
        return tokens
    raise TypeError("invoke() prompt must be a string or an iterable of strings")


def invoke(root, prompt=Unset, /, *, context=None, **options):
    """
    Run root with a prompt and translate failures into a process exit.

    Parameters
    - root: Root to run.
    - prompt:
      • Unset: sys.argv[1:].
      • str: shell-like string split with shlex.split.
      • Iterable[str]: pre-tokenized arguments.
    - context: forwarded to the hook and the directives.
    - options: rendering options for faults (prog, hint, colorful, fancy).

    Behavior
    - Success: returns the command's result.
    - DispatchError, or any error wrapping a usage signal: the message (if
      any) is printed to the root's console and the process exits with 2 for
      flag errors and 1 otherwise. Usage itself was already displayed.
    - Any other exception propagates.
    """
    if not isinstance(root, Root):
        raise TypeError("invoke() first argument must be a root")
    tokens = _tokenize(prompt)
    try:
        return root.run(tokens, context)
    except Exception as error:
        if not isinstance(error, DispatchError) and not requests_usage(error):
            raise
        if isinstance(error, DispatchError):
            if error.message and not isinstance(error, HelpRequested):
                render(error, output=root.flags.output, **options)
        elif str(error):
            root.flags.output.print(Text(str(error), "#FF4DA6"))
        sys.exit(2 if isinstance(error, FlagError) else 1)


__all__ = (
    "HELP_MARKERS",
    "DEPTH_LIMIT",
    "Command",
    "Delegator",
    "Directive",
    "Root",
    "invoke",
)
