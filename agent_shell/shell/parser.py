"""Parse shell source and extract the argv of every command it would run.

Parsing uses bashlex, a Python port of the GNU bash parser. The argv list is
what the block policy inspects before anything is executed, so extraction
errs on the side of reporting more commands rather than fewer:

- commands inside pipelines, lists, compound commands, function bodies,
  command substitutions and process substitutions are all reported
- ``$NAME`` and ``${NAME}`` in a word are expanded against the shell's
  persisted environment and the assignments made earlier in the script
- ``command``/``exec``/``builtin`` prefixes are unwrapped
- ``eval ...`` and ``bash -c SCRIPT`` style invocations are parsed recursively

A variable is only trusted while its value is known statically: assignments
inside functions, loops and substitutions, ``read`` targets and anything
after ``source`` make it unknown.

In strict mode (used whenever a block policy is installed) a command name or
nested script whose text is only known at run time, such as ``$(echo curl)``
or a variable set by ``read``, is refused with ``ShellBlockedError``, as are
``alias``/``hash -p``/``enable`` commands that rebind command names.
"""
from __future__ import annotations

import copy
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import bashlex

from .errors import ShellBlockedError, ShellParseError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
_PARAMETER_RE = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")

# Builtins that run their first non-option argument as a program
_PREFIX_BUILTINS = frozenset(["command", "exec", "builtin"])

# Interpreters whose ``-c`` argument is itself a script
_NESTED_SHELLS = frozenset(["bash", "sh", "zsh", "dash", "ksh"])

# Builtins that assign ``NAME=VALUE`` arguments
_DECLARE_BUILTINS = frozenset(["export", "declare", "typeset", "readonly", "local"])

# Builtins that assign their non-option arguments from input
_READ_BUILTINS = frozenset(["read", "mapfile", "readarray", "getopts"])

# Builtins that run a file in the current shell
_SOURCE_BUILTINS = frozenset(["source", "."])

# Word parts whose text is produced by running something
_SUBSTITUTION_KINDS = frozenset(["commandsubstitution", "processsubstitution"])

# Nodes whose commands may run later, repeatedly or not at all
_DEFERRED_KINDS = _SUBSTITUTION_KINDS | frozenset(["compound", "function"])

# Variables bash sets itself when they are missing from the environment
_SHELL_VARIABLES = frozenset([
    "EUID", "GROUPS", "HISTFILE", "HOME", "HOSTNAME", "HOSTTYPE", "IFS",
    "MACHTYPE", "OPTERR", "OSTYPE", "PATH", "PPID", "PS1", "PS2", "PS4",
    "SHELL", "SHELLOPTS", "SHLVL", "UID",
])

# Variables bash updates as the script runs
_RUNTIME_VARIABLES = frozenset([
    "_", "DIRSTACK", "EPOCHREALTIME", "EPOCHSECONDS", "FUNCNAME", "HISTCMD",
    "LINENO", "OLDPWD", "OPTARG", "OPTIND", "PIPESTATUS", "PWD", "RANDOM",
    "REPLY", "SECONDS", "SRANDOM",
])

# ``${NAME:=value}`` and ``${NAME=value}``
_DEFAULT_ASSIGN_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*):?=")

# Node attributes holding child nodes
_LIST_ATTRS = ("parts", "list", "redirects")
_NODE_ATTRS = ("command", "body", "output", "heredoc")


def parse_script(script: str) -> List[Any]:
    """Parse ``script`` into bashlex nodes.

    Raises:
        ShellParseError: If the script is not valid shell syntax
    """
    if not script.strip():
        return []
    try:
        return bashlex.parse(script)
    except Exception as e:
        raise ShellParseError(f"could not parse command: {e}") from e


@dataclass
class _Scope:
    """What each variable may hold at this point of the script.

    A name maps to its candidate values, or None when the value cannot be
    known before the script runs.
    """

    values: Dict[str, Optional[Set[str]]] = field(default_factory=dict)
    # assigned by code that may run out of source order (functions, loops)
    volatile: Set[str] = field(default_factory=set)
    # set once a file is sourced: any variable may have changed
    tainted: bool = False

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "_Scope":
        return cls(values={key: {value} for key, value in env.items()})

    @property
    def custom_ifs(self) -> bool:
        return self.tainted or "IFS" in self.values or "IFS" in self.volatile

    def lookup(self, name: str) -> Optional[str]:
        """The value of ``name``, "" when unset, None when unknown."""
        if self.tainted or not _NAME_RE.match(name) or name in self.volatile:
            return None
        if name in _RUNTIME_VARIABLES or name.startswith("BASH"):
            return None
        if name not in self.values:
            if name in _SHELL_VARIABLES:
                return None
            return ""
        candidates = self.values[name]
        if not candidates or len(candidates) != 1:
            return None
        return next(iter(candidates))

    def assign(self, name: str, value: Optional[str], conditional: bool) -> None:
        if value is None:
            self.values[name] = None
            return
        current = self.values.get(name)
        if not conditional:
            self.values[name] = {value}
        elif current is None:
            self.values[name] = None
        else:
            self.values[name] = current | {value}

    def unset(self, name: str, conditional: bool) -> None:
        if conditional:
            self.values[name] = None
        else:
            self.values.pop(name, None)


def _is_dynamic(node: Any, scope: _Scope) -> bool:
    """True if the text of ``node`` depends on something run or read at run time."""
    for part in getattr(node, "parts", None) or []:
        kind = getattr(part, "kind", None)
        if kind in _SUBSTITUTION_KINDS:
            return True
        if kind == "parameter" and (scope.custom_ifs or scope.lookup(part.value) is None):
            return True
    return False


def _has_parameter(node: Any) -> bool:
    parts = getattr(node, "parts", None) or []
    return any(getattr(part, "kind", None) == "parameter" for part in parts)


def _expand(node: Any, scope: _Scope) -> str:
    word = node.word
    if not _has_parameter(node):
        return word

    def lookup(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        return scope.lookup(name) or ""

    return _PARAMETER_RE.sub(lookup, word)


def _fields(node: Any, scope: _Scope) -> List[Tuple[str, bool]]:
    """Expand one word into ``(field, dynamic)`` pairs.

    Expanded parameters are split on whitespace and dropped when empty, the
    way bash treats an unquoted expansion.
    """
    dynamic = _is_dynamic(node, scope)
    if dynamic:
        return [(node.word, True)]
    expanded = _expand(node, scope)
    if not _has_parameter(node):
        return [(expanded, False)]
    return [(value, False) for value in expanded.split()]


def _unwrap(argv: List[str]) -> Optional[int]:
    """Index of the program behind ``command``/``exec``/``builtin`` prefixes.

    Returns None when nothing is run.
    """
    start = 0
    while start < len(argv) and argv[start] in _PREFIX_BUILTINS:
        prefix = argv[start]
        start += 1
        options = []
        while start < len(argv) and argv[start].startswith("-"):
            options.append(argv[start])
            start += 1
            # ``exec -a NAME`` sets argv[0] of the program that follows
            if prefix == "exec" and options[-1] == "-a":
                start += 1
        # ``command -v NAME`` only looks NAME up
        if prefix == "command" and any(opt in ("-v", "-V") for opt in options):
            return None
    if start >= len(argv):
        return None
    return start


def _script_option(argv: List[str]) -> Optional[int]:
    """Index of the ``-c`` flag of a shell, alone or combined as in ``-lc``."""
    for idx, value in enumerate(argv[1:], 1):
        if value.startswith("-") and not value.startswith("--") and "c" in value[1:]:
            return idx
    return None


def _nested_script(fields: List[Tuple[str, bool]]) -> Optional[Tuple[str, bool]]:
    argv = [value for value, _ in fields]
    if argv[0] == "eval":
        return " ".join(argv[1:]), any(dynamic for _, dynamic in fields[1:])
    if os.path.basename(argv[0]) in _NESTED_SHELLS:
        idx = _script_option(argv)
        if idx is not None and idx + 1 < len(argv):
            return fields[idx + 1]
    return None


def _assigned_name(text: str) -> Tuple[str, bool]:
    """Split the target of ``NAME=``, ``NAME+=`` or ``NAME[i]=`` into ``(name, plain)``."""
    name = text.rstrip("+").partition("[")[0]
    return name, name == text


def _has_expansion(node: Any) -> bool:
    kinds = {getattr(part, "kind", None) for part in getattr(node, "parts", None) or []}
    return "parameter" in kinds or bool(kinds & _SUBSTITUTION_KINDS)


def _builtin_targets(
    program: str,
    args: List[Tuple[str, bool]],
) -> Optional[List[Tuple[str, Optional[str]]]]:
    """``(name, value)`` pairs a builtin assigns, value None when unknown.

    Returns None when the builtin may change any variable.
    """
    argv = [value for value, _ in args]
    targets: List[Tuple[str, Optional[str]]] = []
    if program in _SOURCE_BUILTINS:
        return None
    if program in _READ_BUILTINS or program == "unset":
        if any(dynamic for _, dynamic in args):
            return None

    if program in _DECLARE_BUILTINS:
        # ``declare -n`` makes a name refer to another variable
        if any(value.startswith("-") and "n" in value for value in argv):
            return None
        for value, dynamic in args:
            text, eq, assigned = value.partition("=")
            if value.startswith("-") or not eq:
                if dynamic:
                    return None
                continue
            name, plain = _assigned_name(text)
            known = plain and not dynamic and not assigned.startswith("(")
            targets.append((name, assigned if known else None))
    elif program in _READ_BUILTINS:
        # prompts, delimiters and counts are never names
        targets.extend(
            (value, None) for value in argv if not value.startswith("-") and _NAME_RE.match(value)
        )
    elif program == "printf" and args:
        if args[0][1]:
            return None
        if "-v" in argv[:-1]:
            targets.append((argv[argv.index("-v") + 1], None))

    if any(not _NAME_RE.match(name) for name, _ in targets):
        return None
    return targets


def _record_assignments(
    node: Any,
    fields: List[Tuple[str, bool]],
    scope: _Scope,
    conditional: bool,
) -> None:
    """Update ``scope`` with what the command node assigns."""
    if not fields:
        # ``NAME=VALUE`` on its own assigns in the current shell
        for part in node.parts:
            if part.kind != "assignment":
                continue
            text, _, value = part.word.partition("=")
            name, plain = _assigned_name(text)
            if not plain or value.startswith("(") or _is_dynamic(part, scope):
                scope.assign(name, None, conditional)
            else:
                scope.assign(name, _expand(part, scope).partition("=")[2], conditional)
        return

    program, args = fields[0][0], fields[1:]
    targets = _builtin_targets(program, args)
    if targets is None:
        scope.tainted = True
    elif program == "unset":
        for value, _ in args:
            if not value.startswith("-"):
                scope.unset(value, conditional)
    else:
        for name, value in targets:
            scope.assign(name, value, conditional)


def _mark_command(node: Any, scope: _Scope) -> None:
    for part in node.parts:
        if part.kind == "assignment":
            scope.volatile.add(_assigned_name(part.word.partition("=")[0])[0])

    fields = [(part.word, _has_expansion(part)) for part in node.parts if part.kind == "word"]
    start = _unwrap([value for value, _ in fields]) if fields else None
    if start is None:
        return
    program, args = fields[start][0], fields[start + 1:]
    targets = _builtin_targets(program, args)
    if program == "eval" or targets is None:
        scope.tainted = True
    elif program == "unset":
        scope.volatile.update(value for value, _ in args if not value.startswith("-"))
    else:
        scope.volatile.update(name for name, _ in targets)


def _mark_volatile(nodes: List[Any], scope: _Scope) -> None:
    """Stop trusting variables that may change out of source order.

    Commands inside functions, loops and other compound commands may run
    later, repeatedly or not at all, so whatever they assign is never looked
    up. The same goes for ``${NAME:=value}`` defaults anywhere in the script.
    """

    def scan(node: Any, deferred: bool) -> None:
        if node.kind == "parameter":
            match = _DEFAULT_ASSIGN_RE.match(node.value)
            if match:
                scope.volatile.add(match.group(1))
        elif node.kind == "for" and len(node.parts) > 1:
            scope.volatile.add(node.parts[1].word)
        elif node.kind == "command" and deferred:
            _mark_command(node, scope)

        deferred = deferred or node.kind in _DEFERRED_KINDS
        for child in _children(node):
            scan(child, deferred)

    for node in nodes:
        scan(node, False)


def _rebinds_lookup(argv: List[str]) -> bool:
    """True if the command changes what a later command name runs."""
    program, args = argv[0], argv[1:]
    if program == "alias":
        return any("=" in arg for arg in args)
    if program == "hash":
        return "-p" in args
    return program == "enable" and bool(args)


def _collect(
    script: str,
    scope: _Scope,
    strict: bool,
    argvs: List[List[str]],
) -> None:
    seen: Set[int] = set()

    def visit_command(node: Any, conditional: bool) -> None:
        fields: List[Tuple[str, bool]] = []
        for part in node.parts:
            if part.kind == "word":
                fields.extend(_fields(part, scope))
        argv = [value for value, _ in fields]

        if argv:
            argvs.append(argv)
            start = _unwrap(argv)
            if start is not None:
                _, dynamic = fields[start]
                if dynamic and strict:
                    logger.info(f"Refusing command with a run-time program name: {argv}")
                    raise ShellBlockedError(argv)
                if strict and _rebinds_lookup(argv[start:]):
                    logger.info(f"Refusing command that rebinds command names: {argv}")
                    raise ShellBlockedError(argv)
                if start > 0:
                    argvs.append(argv[start:])
                nested = _nested_script(fields[start:])
                if nested is not None:
                    nested_script, nested_dynamic = nested
                    if nested_dynamic and strict:
                        logger.info(f"Refusing nested script known only at run time: {argv}")
                        raise ShellBlockedError(argv)
                    logger.debug(f"Checking nested script: {nested_script!r}")
                    # only ``eval`` runs in this shell; ``bash -c`` gets a copy
                    nested_scope = scope if argv[start] == "eval" else copy.deepcopy(scope)
                    _collect(nested_script, nested_scope, strict, argvs)
                _record_assignments(node, fields[start:], scope, conditional)
        else:
            _record_assignments(node, fields, scope, conditional)

        for child in _children(node):
            visit(child, True)

    def visit_list(node: Any, conditional: bool) -> None:
        for part in node.parts:
            if part.kind == "operator" and part.op in ("&&", "||"):
                # later parts may or may not run
                conditional = True
                continue
            visit(part, conditional)

    def visit(node: Any, conditional: bool) -> None:
        if id(node) in seen:
            return
        seen.add(id(node))

        if node.kind == "command":
            visit_command(node, conditional)
            return
        if node.kind == "list":
            visit_list(node, conditional)
            return
        if node.kind == "for":
            parts = node.parts
            if len(parts) > 1 and parts[1].kind == "word":
                scope.assign(parts[1].word, None, conditional)

        for child in _children(node):
            visit(child, True)

    nodes = parse_script(script)
    _mark_volatile(nodes, scope)
    for node in nodes:
        visit(node, False)


def _children(node: Any) -> List[Any]:
    children: List[Any] = []
    for attr in _LIST_ATTRS:
        value = getattr(node, attr, None)
        if isinstance(value, list):
            children.extend(child for child in value if hasattr(child, "kind"))
    for attr in _NODE_ATTRS:
        value = getattr(node, attr, None)
        if hasattr(value, "kind"):
            children.append(value)
    return children


def command_argvs(
    script: str,
    env: Mapping[str, str] | None = None,
    strict: bool = False,
) -> List[List[str]]:
    """Return the argv of every simple command in ``script``.

    Args:
        script: Shell source
        env: Variables used to expand ``$NAME`` words
        strict: Refuse commands whose program name (or nested script) is
            only known at run time

    Returns:
        List of argvs in source order (nested scripts follow their parent)

    Raises:
        ShellParseError: If the script or a nested script cannot be parsed
        ShellBlockedError: In strict mode, for a run-time program name
    """
    argvs: List[List[str]] = []
    _collect(script, _Scope.from_env(env or {}), strict, argvs)
    return argvs


__all__ = [
    "command_argvs",
    "parse_script",
]
