"""
Command context: the handle a running action threads through the call chain.

A Context is passed unchanged to handlers that ask for it (a parameter annotated
`Context`), and it carries everything the output collaborators need: the destination
stream, the requested output mode, JSON pretty/query settings, the silent switch, the
shared table printer cache and the fault presentation options. Nothing is looked up
from a process-wide registry.

Derived contexts
- copy.replace(context, name="child") (or context.__replace__(...)) creates a context
  for a nested command; derived contexts share the same printer cache.
"""
import sys

from .outputs import OutputMode, print_info, print_object
from .tables import TablePrinterCache
from .utils import Unset, coalesce, mirror


class Context:
    """
    Execution context of one command.

    Attributes (read-only)
    - name: command name used in messages ("bite" when not given).
    - out: destination stream (sys.stdout at access time when not given).
    - output: requested output mode string ("table" | "json" | "yaml", any case).
    - pretty: indent JSON output (two spaces).
    - query: jmespath expression applied to JSON output ("" disables it).
    - silent: True/False when the command registered a silent switch, Unset otherwise.
    - header_style: rich style applied to table headers.
    - friendly: fault code → message mapping used by Action.run().
    - options: the command's OptionSet (Unset when not attached).
    - printers: table printer cache shared by derived contexts.
    - shell/fancy/colorful: fault presentation (print and exit vs raise, panel, colors).
    """
    __introspectable__ = (
        "name",
        "output",
        "pretty",
        "query",
        "silent",
        "header_style",
        "friendly",
        "shell",
        "fancy",
        "colorful",
    )

    name = mirror("name")
    output = mirror("output")
    pretty = mirror("pretty")
    query = mirror("query")
    silent = mirror("silent")
    header_style = mirror("header_style")
    friendly = mirror("friendly")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")

    def __init__(
            self,
            name=Unset,
            /,
            *,
            out=Unset,
            output="table",
            pretty=True,
            query="",
            silent=Unset,
            header_style=Unset,
            friendly=Unset,
            options=Unset,
            printers=Unset,
            shell=False,
            fancy=False,
            colorful=True,
    ):
        if not isinstance(name, str | Unset):
            raise TypeError("context 'name' must be a string")
        if not isinstance(output, str):
            raise TypeError("context 'output' must be a string")
        if not isinstance(query, str):
            raise TypeError("context 'query' must be a string")
        if not isinstance(silent, bool | Unset):
            raise TypeError("context 'silent' must be a boolean")
        if not isinstance(printers, TablePrinterCache | Unset):
            raise TypeError("context 'printers' must be a table printer cache")

        self._name = coalesce(name, "bite")
        self._out = out
        self._output = output
        self._pretty = bool(pretty)
        self._query = query.strip()
        self._silent = silent
        self._header_style = coalesce(header_style, "bold")
        self._friendly = dict(coalesce(friendly, {}))
        self._options = options
        self._printers = TablePrinterCache() if printers is Unset else printers
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)

    @classmethod
    def from_options(cls, name=Unset, switches=Unset, /, **metadata):
        """
        build a context whose output settings come from an output option set
        (see outputs.output_options); explicit keywords win over the switches.
        """
        if switches is not Unset:
            if "output" in switches:
                metadata.setdefault("output", switches.get("output"))
            if "no-pretty" in switches:
                metadata.setdefault("pretty", not switches.get("no-pretty"))
            if "query" in switches:
                metadata.setdefault("query", switches.get("query"))
            if "silent" in switches:
                metadata.setdefault("silent", switches.get("silent"))
        return cls(name, **metadata)

    @property
    def out(self):
        return coalesce(self._out, sys.stdout)

    @property
    def options(self):
        return self._options

    @property
    def printers(self):
        return self._printers

    @property
    def mode(self):
        """
        output mode selected by `output`; read on every render call.
        """
        return OutputMode.parse(self._output)

    @property
    def machine_friendly(self):
        """
        True when results are meant for programs (json/yaml), which hides info messages.
        """
        return self.mode is not OutputMode.TABLE

    def print_info(self, message, /, *args):
        return print_info(self, message, *args)

    def print_object(self, value, /, *filters):
        return print_object(self, value, *filters)

    def __replace__(self, **overrides):
        metadata = {
            "out": self._out,
            "output": self._output,
            "pretty": self._pretty,
            "query": self._query,
            "silent": self._silent,
            "header_style": self._header_style,
            "friendly": self._friendly,
            "options": self._options,
            "printers": self._printers,
            "shell": self._shell,
            "fancy": self._fancy,
            "colorful": self._colorful,
        } | overrides
        return type(self)(metadata.pop("name", self._name), **metadata)

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)

    def __repr__(self):
        return "context(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


__all__ = (
    "Context",
)
