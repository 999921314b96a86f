"""
Demo command tree for helmsman.

    python main.py -h
    python main.py foo -delta 3 -echo hi
    python main.py -verbose bar -alpha 1 cities -bravo
    python main.py bar oof -bravo
    python main.py bar nested alfa

Every flag binds into one Arguments object built at startup and handed to
build(); no directive reaches for global state. Parse failures and help
requests are raised to invoke(), which exits with status 2 for bad flags and
1 for any other failure, help included.
"""
import os.path
import sys
from types import SimpleNamespace

from rich.console import Console

from helmsman import *

console = Console()


class Arguments:
    """Top-level set of named arguments, one namespace per command family."""

    def __init__(self):
        self.root = SimpleNamespace()
        self.foo = SimpleNamespace()
        self.bar = SimpleNamespace()


def _foo(args, prog):
    def setup(parent):
        flags = FlagSet(prog + " foo", descr="Example, repeat a string.", namespace=args.foo)
        flags.option("delta", int, 5, "repeat a string delta times")
        flags.option("echo", str, "test", "string to repeat")
        return flags

    def run(context):
        for _ in range(args.foo.delta):
            console.print(args.foo.echo)

    return Command("a terminal task", setup=setup, run=run)


def _bar(args, prog):
    flags = FlagSet(
        prog + " bar",
        descr="Demo of Delegator (parent command with subcommands).",
        namespace=args.bar,
    )
    flags.option("alpha", int, 42, "a number")

    def cities_setup(parent):
        inherited = parent.derive(parent.name + " cities", descr="Output a city name. Here are some flags.")
        inherited.flag("bravo", False, "show a city with a B")
        inherited.option("charlie", str, "parker", "customize charlie")
        return inherited

    def cities(context):
        if args.bar.bravo:
            names = ["Bonn, Germany", "Balikpapan, Indonesia", "Beni Mellal, Morocco", "Bello, Colombia"]
        else:
            names = ["A Coruña, Spain", "Ageo, Japan", "Accra, Ghana", "Avellaneda, Argentina"]
        console.print("city: %r, custom charlie: %r" % (names[args.bar.alpha % len(names)], args.bar.charlie))

    def oof_setup(parent):
        inherited = parent.derive(parent.name + " oof", descr="Return an error if bravo is true, otherwise be ok.")
        inherited.flag("bravo", False, "return an error if true")
        inherited.option("chuck", str, "berry", "an alternative charlie", dest="charlie")
        return inherited

    def oof(context):
        if args.bar.bravo:
            raise ShowUsage("demo force show usage")
        console.print("your alternative charlie %r is %d years old" % (args.bar.charlie, args.bar.alpha))

    nested_flags = FlagSet(prog + " bar nested", descr="Demo of nested Delegator.", namespace=args.bar)

    def leaf(name):
        def setup(parent):
            return parent.derive(parent.name + " " + name)
        return setup

    def alfa(context):
        console.print("called bar.nested.alfa")

    def bravo(context):
        console.print("called bar.nested.bravo")
        raise RuntimeError("demo error")

    nested = Delegator(
        "a subcommand (with its own commands) of a subcommand",
        flags=nested_flags,
        children={
            "alfa": Command("terminal command of a nested subcommand", setup=leaf("alfa"), run=alfa),
            "bravo": Command("terminal command of a nested subcommand, (returns error)", setup=leaf("bravo"), run=bravo),
        },
    )

    return Delegator(
        "example delegator with subcommands",
        flags=flags,
        children={
            "cities": Command("print a city name", setup=cities_setup, run=cities),
            "oof": Command("maybe error", setup=oof_setup, run=oof),
            "nested": nested,
        },
    )


def build(args, prog):
    """Wire the whole tree around args."""
    flags = FlagSet(prog, descr="%s is a demo of hierarchical subcommands." % prog, namespace=args.root)
    flags.flag("verbose", False, "say what is about to happen")

    def announce(context):
        if args.root.verbose:
            console.print("dispatching %r" % (flags.args,), style="dim")

    return Root(
        Delegator(
            "demo of helmsman",
            flags=flags,
            children={
                "foo": _foo(args, prog),
                "bar": _bar(args, prog),
            },
        ),
        pre_perform=announce,
    )


if __name__ == '__main__':
    invoke(build(Arguments(), os.path.basename(sys.argv[0])))
