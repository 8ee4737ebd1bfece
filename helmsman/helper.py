"""
Helmsman help and usage rendering.

- usage(names, action): one plain-text usage line, e.g.
  "calc add [-v] [--to TO] A B"; attached to binding faults.
- render(registry, path, action): a rich renderable with the usage line, the
  description, a table of nested commands and actions, and the parameter
  sections (arguments, options, and the registry's global options on every
  screen).

Palette keys
- usage-label, program-name, usage-section, description-section
- group-label, argument-description, option-name, flag-name, metavar,
  greedy-metavar, choice, default, environment
- children-title, children-table, children, children-description
- panel-title

Customization
- Define a mapping named __styles__ in __main__ (or pass styles=) to override
  any palette entry; colorful=False suppresses styling; fancy=True wraps the
  help in a panel.
"""
import enum
import inspect
from collections import defaultdict

from rich.box import ROUNDED
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .registry import ParameterKind, flatten
from .utils import Unset

_STYLES = {
    # === Head sections ===
    "usage-label": "bold #00E6FF",
    "program-name": "bold #FF4D94",
    "usage-section": "bold #36C5F0",
    "description-section": "italic #A3A3A3",

    # === Groups / arguments ===
    "group-label": "bold #FFFFFF",
    "argument-description": "#9CA3AF",
    "option-name": "bold #00E6FF",
    "flag-name": "bold #22C55E",
    "metavar": "bold #FFD600",
    "greedy-metavar": "bold italic #FFD600",
    "choice": "bold #FF4D94",
    "default": "#737373",
    "environment": "#737373 italic",

    # === Children table ===
    "children-title": "bold #FFFFFF",
    "children-table": "#4B5563",
    "children": "bold #36C5F0",
    "children-description": "#9CA3AF",

    # === Fancy panel ===
    "panel-title": "bold #FF4D94",
}


def metavar(parameter, /):
    """
    Placeholder for the value of `parameter` ('{a,b}' for enums, NAME otherwise).
    """
    if isinstance(parameter.type, enum.EnumMeta):
        return "{%s}" % ",".join(member.name.lower() for member in parameter.type)
    return parameter.name.upper().replace("-", "_")


def _usage_items(action):
    items = []
    for parameter, _ in action.surface:
        if parameter.kind is not ParameterKind.NAMED:
            continue
        spelling = f"-{parameter.short}" if parameter.short else f"--{parameter.name}"
        item = spelling if parameter.switch else f"{spelling} {metavar(parameter)}"
        if parameter.multiple:
            item += " ..."
        items.append(item if parameter.required else f"[{item}]")

    for parameter, _ in action.surface:
        if parameter.kind is not ParameterKind.POSITIONAL:
            continue
        item = metavar(parameter) + (" ..." if parameter.multiple else "")
        items.append(item if parameter.required else f"[{item}]")
    return items


def usage(names, action=None, /):
    """
    Plain-text usage line for a command path (and optionally one action).
    """
    parts = list(names)
    if action is not None:
        if not action.primary:
            parts.append(action.name)
        parts.extend(_usage_items(action))
    else:
        parts.append("<command>")
    return " ".join(parts)


def _description(descriptor):
    if descriptor.description:
        return descriptor.description
    if (callback := getattr(descriptor, "callback", None)) is not None:
        return inspect.getdoc(callback)
    return None


def _shown(default):
    return default is not Unset and default is not None and default is not False and default != ()


def render(registry, path=(), action=None, /, *, implicit=False, prog=None, colorful=True, fancy=False, styles=None):
    """
    Build the help renderable for the registry root, a command, or an action.

    - path: command chain (root first), empty for the registry overview.
    - action: the action to document; with `implicit` (the primary action was
      picked without its name) the command's children are listed as well.
    """
    palette = defaultdict(str, _STYLES | getattr(__import__("__main__"), "__styles__", {}) | dict(styles or {}))

    def styler(style):
        return palette[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        return Text(str(fragment), styler(style))

    names = tuple(command.name for command in path)
    renders = []

    # usage line(s)
    lines = []
    if not path:
        lines.append(usage((prog or "helmsman",)))
    else:
        if action is None or implicit:
            lines.append(usage(names))
        if action is not None:
            lines.append(usage(names, action))
    heading = Text()
    heading.append("usage", styler("usage-label")).append(": ")
    heading.append(Text("\n       ").join(text(line, "usage-section") for line in lines))
    renders.append(heading.append("\n"))

    owner = action if action is not None and not implicit else (path[-1] if path else registry)
    if descr := _description(owner):
        renders.append(text(descr, "description-section").append("\n"))

    # children table
    children = []
    if not path:
        children = [(command.name, command.aliases, command.description) for command in registry.commands]
    elif action is None or implicit:
        command = path[-1]
        children = [(child.name, child.aliases, child.description) for child in command.commands]
        children += [
            (item.name + (" (default)" if item.primary else ""), item.aliases, _description(item))
            for item in command.actions
        ]
    if children:
        table = Table(
            "name", "help",
            title=text("commands" if not path else "subcommands", "children-title"),
            box=ROUNDED,
            style=styler("children-table"),
            header_style=styler("children-title"),
        )
        for name, aliases, descr in children:
            label = text(name, "children")
            if aliases:
                label.append(" (%s)" % ", ".join(aliases))
            route = " ".join((*names, name.split(" ")[0])) or name
            table.add_row(
                label,
                text(descr, "children-description") if descr else text(f"run '{route} --help' for details", "children-description"),
            )
        renders.append(table)

    def option(parameter):
        spellings = ([f"-{parameter.short}"] if parameter.short else []) + [f"--{name}" for name in parameter.names]
        label = Text(", ").join(text(spelling, "flag-name" if parameter.switch else "option-name") for spelling in spellings)
        if not parameter.switch:
            label.append(" ").append(text(metavar(parameter), "choice" if isinstance(parameter.type, enum.EnumMeta) else "metavar"))
        return label, parameter

    # parameter sections
    sections = {"arguments": [], "options": [], "global options": []}
    if action is not None:
        for parameter, _ in action.surface:
            if parameter.kind is ParameterKind.POSITIONAL:
                label = text(metavar(parameter), "greedy-metavar" if parameter.multiple else "metavar")
                sections["arguments"].append((label, parameter))
            else:
                sections["options"].append(option(parameter))
        sections["options"].append((Text(", ").join((text("-h", "flag-name"), text("--help", "flag-name"))), None))
    if registry.globals is not None:
        sections["global options"].extend(option(parameter) for parameter, _ in flatten(registry.globals.members))

    for group, entries in sections.items():
        if not entries:
            continue
        grid = Table.grid(padding=(0, 2))
        grid.add_column(no_wrap=True)
        grid.add_column()
        for label, parameter in entries:
            if parameter is None:
                grid.add_row(Text("  ") + label, text("show this help message and exit", "argument-description"))
                continue
            descr = text(parameter.description or "", "argument-description")
            if parameter.kind is not ParameterKind.POSITIONAL or not parameter.required:
                if _shown(default := parameter.fallback):
                    descr.append(" ").append(text(f"[default: {getattr(default, 'name', default)!s}]", "default"))
            if parameter.env:
                descr.append(" ").append(text(f"[env: {parameter.env}]", "environment"))
            grid.add_row(Text("  ") + label, descr)
        renders.append(Group(text(group, "group-label").append(":"), grid, Text("")))

    if fancy:
        return Panel(Group(*renders), title=text(prog or " ".join(names) or "helmsman", "panel-title"), title_align="left")
    return Group(*renders)


__all__ = (
    "metavar",
    "usage",
    "render",
)
