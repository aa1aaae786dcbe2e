"""Lazy-loading rewriter.

Turns a column-0 ``require``/``import`` of one dependency into a deferred
accessor and routes the file's usages through it. Only statements that still
sit at module level are touched, so a second pass over a rewritten file finds
nothing to do.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from depweave.models import ImportReference, ReferenceKind
from depweave.scanner.base import BaseScanner, dependency_token

_JS_NOISE = r"""'(?:\\.|[^'\\\n])*'|"(?:\\.|[^"\\\n])*"|`(?:\\.|[^`\\])*`|//[^\n]*|/\*[\s\S]*?\*/"""
_PY_NOISE = r"""'''[\s\S]*?'''|\"\"\"[\s\S]*?\"\"\"|'(?:\\.|[^'\\\n])*'|"(?:\\.|[^"\\\n])*"|\#[^\n]*"""


@dataclass
class Rewrite:
    source: str
    changes: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _identifier(token: str) -> str:
    words = [w for w in re.split(r"[^0-9A-Za-z]+", token) if w]
    return "".join(w[:1].upper() + w[1:] for w in words) or "Module"


def _snake(token: str) -> str:
    return re.sub(r"[^0-9A-Za-z_]+", "_", token).strip("_").lower() or "module"


def replace_names(text: str, replacements: dict[str, str], python: bool) -> tuple[str, int]:
    """Replace bare identifiers outside strings and comments."""
    if not replacements:
        return text, 0
    names = "|".join(re.escape(n) for n in sorted(replacements, key=len, reverse=True))
    noise = _PY_NOISE if python else _JS_NOISE
    pattern = re.compile(rf"(?P<noise>{noise})|(?<![\w$.])(?P<name>{names})(?![\w$])")
    count = 0

    def _sub(m: re.Match) -> str:
        nonlocal count
        if m.group("name") is None:
            return m.group(0)
        count += 1
        return replacements[m.group("name")]

    return pattern.sub(_sub, text), count


# Contexts where a name is declared or used as a key rather than read
_PY_DECLARE_BEFORE = re.compile(
    r"(?:\b(?:for|as|class|def|global|nonlocal|import|del)\s+|\blambda\b[^:\n]*)$"
)
_PY_DECLARE_AFTER = re.compile(r"\s*(?::=|(?:[-+*/%&|^@]|//|\*\*|<<|>>)?=(?!=))")
_JS_DECLARE_BEFORE = re.compile(r"\b(?:let|const|var|function|class)\s+$")
_JS_DECLARE_AFTER = re.compile(
    r"\s*(?:(?:[-+*/%&|^]|\*\*|<<|>>>?|&&|\|\||\?\?)?=(?!=)|\+\+|--)"
)
_JS_CONTROL = {"if", "while", "for", "switch", "return", "with", "typeof", "await"}
_OPENERS = {")": "(", "]": "[", "}": "{"}


def _mask_noise(text: str, python: bool) -> str:
    """Blank out strings and comments, keeping offsets and newlines."""
    noise = re.compile(_PY_NOISE if python else _JS_NOISE)
    return noise.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), text)


def _enclosing(text: str, pos: int) -> int:
    """Offset of the innermost unclosed bracket before ``pos``, or -1."""
    depth = 0
    for i in range(pos - 1, -1, -1):
        ch = text[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in "([{":
            if not depth:
                return i
            depth -= 1
    return -1


def _closing(text: str, pos: int) -> int:
    depth = 0
    for i in range(pos, len(text)):
        if text[i] in "([{":
            depth += 1
        elif text[i] in _OPENERS:
            depth -= 1
            if not depth:
                return i
    return len(text)


def _is_declaration(text: str, start: int, end: int, python: bool) -> bool:
    before = text[max(0, start - 200):start]
    after = text[end:end + 8]
    if python:
        if _PY_DECLARE_BEFORE.search(before) or _PY_DECLARE_AFTER.match(after):
            return True
        opener = _enclosing(text, start)
        return opener >= 0 and text[opener] == "(" and bool(
            re.search(r"\bdef\s+\w+\s*$", text[max(0, opener - 200):opener])
        )

    if _JS_DECLARE_BEFORE.search(before) or _JS_DECLARE_AFTER.match(after):
        return True
    opener = _enclosing(text, start)
    if opener < 0:
        return False
    if text[opener] == "{":
        # Object key or shorthand property
        if re.match(r"\s*:", after) and not re.search(r"(?:\?|\bcase)\s*$", before):
            return True
        return bool(re.search(r"[{,]\s*$", before) and re.match(r"\s*[,}]", after))
    if text[opener] != "(":
        return False
    head = text[max(0, opener - 200):opener]
    if re.search(r"\bfunction\b\s*\*?\s*[\w$]*\s*$", head):
        return True
    tail = text[_closing(text, opener) + 1:]
    if re.match(r"\s*=>", tail):
        return True
    word = re.search(r"(?<![\w$.])([\w$]+)\s*$", head)
    if word and word.group(1) == "catch":
        return True
    return bool(word and word.group(1) not in _JS_CONTROL and re.match(r"\s*\{", tail))


def find_declarations(text: str, names, python: bool) -> list[tuple[str, int]]:
    """(name, line) for each place a name is bound, a parameter, or a key."""
    if not names:
        return []
    masked = _mask_noise(text, python)
    alternatives = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))
    pattern = re.compile(rf"(?<![\w$.])(?:{alternatives})(?![\w$])")
    return [
        (m.group(0), masked.count("\n", 0, m.start()) + 1)
        for m in pattern.finditer(masked)
        if _is_declaration(masked, m.start(), m.end(), python)
    ]


def _shares_line(lines: list[str], ref: ImportReference) -> bool:
    text = "\n".join(lines[ref.line_number - 1:ref.end_line])
    rest = text.replace(ref.statement, "", 1).strip().lstrip(";").strip()
    return bool(rest) and not rest.startswith(("#", "//"))


def rewrite_lazy_imports(
    source: str,
    file_path: Path,
    target: str,
    scanner: BaseScanner,
) -> Rewrite:
    """Rewrite every top-level reference to ``target`` in ``source``."""
    python = file_path.suffix == ".py"
    all_refs = scanner.extract_references(source, file_path)
    refs = [
        r for r in all_refs
        if r.target == target and not r.indented and r.kind is not ReferenceKind.DYNAMIC
    ]
    result = Rewrite(source=source)
    if not refs:
        result.skipped.append(f"no top-level reference to {target}")
        return result

    # Bottom-up keeps the line numbers of earlier statements valid
    for ref in sorted(refs, key=lambda r: r.line_number, reverse=True):
        siblings = [r for r in all_refs if r.line_number == ref.line_number and r is not ref]
        if any(r.target != target for r in siblings):
            result.skipped.append(
                f"line {ref.line_number}: statement also imports other modules"
            )
            continue
        if python:
            plan = _python_accessor(ref, target)
        else:
            plan = _js_accessor(ref, target)
        if isinstance(plan, str):
            result.skipped.append(f"line {ref.line_number}: {plan}")
            continue

        accessor, block, replacements = plan
        if re.search(rf"(?:def|function)\s+{re.escape(accessor)}\s*\(", result.source):
            result.skipped.append(f"line {ref.line_number}: {accessor}() already defined")
            continue

        lines = result.source.split("\n")
        start, end = ref.line_number - 1, ref.end_line
        if _shares_line(lines, ref):
            result.skipped.append(f"line {ref.line_number}: statement shares its line with other code")
            continue
        rest = "\n".join(lines[:start] + [""] * (end - start) + lines[end:])
        declared = find_declarations(rest, replacements, python)
        if declared:
            name, line = declared[0]
            result.skipped.append(
                f"line {ref.line_number}: '{name}' is re-declared or used as a key "
                f"on line {line}; defer it by hand"
            )
            continue
        head, used_head = replace_names("\n".join(lines[:start]), replacements, python)
        tail, used_tail = replace_names("\n".join(lines[end:]), replacements, python)
        pieces = ([head] if start else []) + ["\n".join(block)] + ([tail] if end < len(lines) else [])
        result.source = "\n".join(pieces)
        result.changes.append(
            f"line {ref.line_number}: '{ref.statement.splitlines()[0]}' -> {accessor}() "
            f"({used_head + used_tail} usage(s) rewritten)"
        )

    return result


def _js_accessor(ref: ImportReference, target: str):
    if ref.kind is ReferenceKind.IMPORT:
        return "ES module import cannot be deferred synchronously; convert it by hand"
    if not ref.binding and not ref.symbols:
        return "side-effect require has no binding to defer"

    name = _identifier(ref.binding or dependency_token(target))
    accessor = f"get{name}"
    cache = f"_{name[:1].lower()}{name[1:]}"
    block = [
        f"let {cache};",
        f"function {accessor}() {{",
        f"  if (!{cache}) {{",
        f"    {cache} = require('{ref.specifier}');",
        "  }",
        f"  return {cache};",
        "}",
    ]
    if ref.binding:
        replacements = {ref.binding: f"{accessor}()"}
    else:
        replacements = {local: f"{accessor}().{imported}" for local, imported in ref.symbols.items()}
    return accessor, block, replacements


def _python_accessor(ref: ImportReference, target: str):
    if ref.binding:
        accessor = f"_lazy_{_snake(ref.binding)}"
        if ref.statement.startswith("from"):
            dots = ref.specifier[:len(ref.specifier) - len(ref.specifier.lstrip("."))]
            imported = ref.specifier[len(dots):]
            statement = f"from {dots} import {imported}"
            if imported != ref.binding:
                statement += f" as {ref.binding}"
        else:
            statement = f"import {ref.specifier}"
            if ref.binding != ref.specifier.split(".")[0]:
                statement += f" as {ref.binding}"
        block = [
            f"def {accessor}():",
            f"    {statement}",
            f"    return {ref.binding}",
        ]
        return accessor, block, {ref.binding: f"{accessor}()"}

    if not ref.symbols:
        return "star import cannot be deferred"

    accessor = f"_lazy_{_snake(dependency_token(target))}"
    block = [
        f"def {accessor}():",
        "    import importlib",
        f"    return importlib.import_module({ref.specifier!r}, __package__)",
    ]
    replacements = {local: f"{accessor}().{imported}" for local, imported in ref.symbols.items()}
    return accessor, block, replacements
