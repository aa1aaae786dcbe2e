"""Python reference scanner.

Import statements are matched with regexes rather than ``ast`` so that files
with syntax errors still contribute edges.
"""

from __future__ import annotations

import re
from pathlib import Path

from depweave.models import ImportReference, Language, ReferenceKind
from depweave.scanner.base import BaseScanner, is_indented, line_of

_FROM_IMPORT_RE = re.compile(
    r"^[ \t]*from\s+(\.+[\w.]*|[\w.]+)\s+import\s+(\([^)]*\)|[^\n#;]+)",
    re.MULTILINE,
)
_IMPORT_RE = re.compile(
    r"^[ \t]*import\s+([\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*)",
    re.MULTILINE,
)


def _split_names(names: str) -> list[tuple[str, str]]:
    """``a, b as c`` -> ``[("a", "a"), ("b", "c")]`` (imported, local)."""
    result = []
    for part in names.strip().strip("()").replace("\\\n", " ").split(","):
        part = " ".join(part.split())
        if not part:
            continue
        if " as " in part:
            imported, local = (p.strip() for p in part.split(" as ", 1))
        else:
            imported = local = part
        result.append((imported, local))
    return result


class PythonScanner(BaseScanner):
    language = Language.PYTHON
    extensions = (".py",)

    def extract_references(self, source: str, file_path: Path) -> list[ImportReference]:
        refs: list[ImportReference] = []

        for m in _FROM_IMPORT_RE.finditer(source):
            offset = m.start() + len(m.group(0)) - len(m.group(0).lstrip(" \t"))
            module, names = m.group(1), _split_names(m.group(2))
            statement = m.group(0).strip()
            line = line_of(source, offset)
            indented = is_indented(source, offset)

            if module.strip(".") == "" and names:
                # from . import a, b -- each name may be a submodule
                package_dir = self._relative_base(file_path, module)
                for imported, local in names:
                    target = self._resolve_path(package_dir, imported) or \
                        self._resolve_path(package_dir, "")
                    refs.append(ImportReference(
                        specifier=f"{module}{imported}",
                        line_number=line,
                        kind=ReferenceKind.PYTHON,
                        target=target,
                        indented=indented,
                        binding=local,
                        statement=statement,
                    ))
                continue

            symbols = {local: imported for imported, local in names if imported != "*"}
            refs.append(ImportReference(
                specifier=module,
                line_number=line,
                kind=ReferenceKind.PYTHON,
                target=self.resolve(module, file_path, names),
                indented=indented,
                symbols=symbols,
                statement=statement,
            ))

        for m in _IMPORT_RE.finditer(source):
            offset = m.start() + len(m.group(0)) - len(m.group(0).lstrip(" \t"))
            for imported, local in _split_names(m.group(1)):
                binding = local if local != imported else imported.split(".")[0]
                refs.append(ImportReference(
                    specifier=imported,
                    line_number=line_of(source, offset),
                    kind=ReferenceKind.PYTHON,
                    target=self.resolve(imported, file_path),
                    indented=is_indented(source, offset),
                    binding=binding,
                    statement=m.group(0).strip(),
                ))

        refs.sort(key=lambda r: r.line_number)
        return refs

    def resolve(
        self,
        module: str,
        file_path: Path,
        names: list[tuple[str, str]] | None = None,
    ) -> str | None:
        if module.startswith("."):
            dots = len(module) - len(module.lstrip("."))
            base = self._relative_base(file_path, "." * dots)
            dotted = module[dots:]
        else:
            base = self.root
            dotted = module

        target = self._resolve_path(base, dotted)
        if target and target.endswith("__init__.py") and names and len(names) == 1:
            # from pkg import submodule
            submodule = self._resolve_path(base, f"{dotted}.{names[0][0]}".strip("."))
            return submodule or target
        return target

    def _relative_base(self, file_path: Path, dots: str) -> Path:
        base = file_path.parent
        for _ in range(len(dots) - 1):
            base = base.parent
        return base

    def _resolve_path(self, base: Path, dotted: str) -> str | None:
        parts = [p for p in dotted.split(".") if p]
        target = base.joinpath(*parts) if parts else base
        if parts:
            module_id = self._existing(target.with_name(target.name + ".py"))
            if module_id:
                return module_id
        return self._existing(target / "__init__.py")
