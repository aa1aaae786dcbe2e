"""JavaScript/TypeScript reference scanner using regex patterns."""

from __future__ import annotations

import re
from pathlib import Path

from depweave.models import ImportReference, Language, ReferenceKind
from depweave.scanner.base import BaseScanner, is_indented, line_of

# const x = require('./x');  const { a, b: c } = require('./x');
_REQUIRE_DECL_RE = re.compile(
    r"""^[ \t]*(?:const|let|var)\s+([\w$]+|\{[^}]*\})\s*=\s*require\s*\(\s*(['"`])([^'"`\n]+)\2\s*\)[ \t]*;?""",
    re.MULTILINE,
)
_REQUIRE_RE = re.compile(r"""\brequire\s*\(\s*(['"`])([^'"`\n]+)\1\s*\)""")
_IMPORT_FROM_RE = re.compile(
    r"""^[ \t]*(import|export)\s+(?:type\s+)?([\w$\s{},*]+?)\s+from\s*(['"])([^'"\n]+)\3[ \t]*;?""",
    re.MULTILINE,
)
_SIDE_EFFECT_IMPORT_RE = re.compile(r"""^[ \t]*import\s*(['"])([^'"\n]+)\1[ \t]*;?""", re.MULTILINE)
_DYNAMIC_IMPORT_RE = re.compile(r"""\bimport\s*\(\s*(['"])([^'"\n]+)\1\s*\)""")

_RESOLVE_SUFFIXES = (".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs", ".json")


def parse_destructuring(pattern: str) -> dict[str, str]:
    """``{ a, b: c }`` -> ``{"a": "a", "c": "b"}`` (local -> imported)."""
    symbols: dict[str, str] = {}
    for part in pattern.strip().strip("{}").split(","):
        part = part.strip()
        if not part or part.startswith("..."):
            continue
        if ":" in part:
            imported, local = (p.strip() for p in part.split(":", 1))
        elif " as " in part:
            imported, local = (p.strip() for p in part.split(" as ", 1))
        else:
            imported = local = part
        local = local.split("=")[0].strip()
        if local:
            symbols[local] = imported
    return symbols


def _parse_import_clause(clause: str) -> tuple[str | None, dict[str, str]]:
    """Split an ES import clause into a module binding and named symbols."""
    binding: str | None = None
    symbols: dict[str, str] = {}
    clause = clause.strip()
    brace = re.search(r"\{[^}]*\}", clause)
    if brace:
        symbols = parse_destructuring(brace.group(0))
        clause = (clause[:brace.start()] + clause[brace.end():]).strip().strip(",").strip()
    for part in (p.strip() for p in clause.split(",")):
        if not part:
            continue
        m = re.match(r"\*\s+as\s+([\w$]+)", part)
        if m:
            binding = m.group(1)
        elif re.fullmatch(r"[\w$]+", part):
            binding = part
    return binding, symbols


class JsScanner(BaseScanner):
    language = Language.JAVASCRIPT
    extensions = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")

    def extract_references(self, source: str, file_path: Path) -> list[ImportReference]:
        refs: list[ImportReference] = []
        claimed: list[tuple[int, int]] = []

        for m in _REQUIRE_DECL_RE.finditer(source):
            pattern = m.group(1)
            binding = None if pattern.startswith("{") else pattern
            symbols = parse_destructuring(pattern) if binding is None else {}
            refs.append(self._make(
                file_path, source, m.start(), m.group(3), ReferenceKind.REQUIRE,
                binding=binding, symbols=symbols, statement=m.group(0).strip(),
            ))
            claimed.append(m.span())

        for m in _REQUIRE_RE.finditer(source):
            if any(start <= m.start() < end for start, end in claimed):
                continue
            refs.append(self._make(
                file_path, source, m.start(), m.group(2), ReferenceKind.REQUIRE,
                statement=m.group(0),
            ))

        for m in _IMPORT_FROM_RE.finditer(source):
            binding, symbols = _parse_import_clause(m.group(2))
            if m.group(1) == "export":
                binding, symbols = None, {}
            refs.append(self._make(
                file_path, source, m.start(), m.group(4), ReferenceKind.IMPORT,
                binding=binding, symbols=symbols, statement=m.group(0).strip(),
            ))

        for m in _SIDE_EFFECT_IMPORT_RE.finditer(source):
            refs.append(self._make(
                file_path, source, m.start(), m.group(2), ReferenceKind.IMPORT,
                statement=m.group(0).strip(),
            ))

        for m in _DYNAMIC_IMPORT_RE.finditer(source):
            refs.append(self._make(
                file_path, source, m.start(), m.group(2), ReferenceKind.DYNAMIC,
                statement=m.group(0),
            ))

        refs.sort(key=lambda r: r.line_number)
        return refs

    def _make(
        self,
        file_path: Path,
        source: str,
        offset: int,
        specifier: str,
        kind: ReferenceKind,
        binding: str | None = None,
        symbols: dict[str, str] | None = None,
        statement: str = "",
    ) -> ImportReference:
        # Leading whitespace matched by ^[ \t]* belongs to the statement line
        while offset < len(source) and source[offset] in " \t":
            offset += 1
        return ImportReference(
            specifier=specifier,
            line_number=line_of(source, offset),
            kind=kind,
            target=self.resolve(specifier, file_path),
            indented=is_indented(source, offset),
            binding=binding,
            symbols=symbols or {},
            statement=statement,
        )

    def resolve(self, specifier: str, file_path: Path) -> str | None:
        """Resolve a relative specifier to a module id; bare packages stay external."""
        if not specifier.startswith("."):
            return None
        base = file_path.parent / specifier
        candidates = [base]
        candidates += [base.with_name(base.name + suffix) for suffix in _RESOLVE_SUFFIXES]
        candidates += [base / f"index{suffix}" for suffix in _RESOLVE_SUFFIXES]
        for candidate in candidates:
            module_id = self._existing(candidate)
            if module_id:
                return module_id
        return None
