"""
Kernel boundary and invariants contract.

1. shoptrack_kernel/** may NOT import shoptrack_config.  Configuration is
   translated into kernel objects by shoptrack_config.bridges, never the
   other way round.

2. shoptrack_kernel/domain/** is pure: it may not import the database,
   the ORM models, the repository or the services.

3. Selectors never import services, so reads cannot trigger writes.

4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST.
"""

import ast
from pathlib import Path

import pytest

from shoptrack_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]
KERNEL = ROOT / "shoptrack_kernel"

IMPURE_FOR_DOMAIN = (
    "sqlalchemy",
    "shoptrack_kernel.db",
    "shoptrack_kernel.models",
    "shoptrack_kernel.repository",
    "shoptrack_kernel.services",
    "shoptrack_kernel.selectors",
)


def _imports(path: Path) -> list[tuple[int, str]]:
    """(line, module) for every import statement in a file."""
    tree = ast.parse(path.read_text(), filename=str(path))
    found: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            found.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            found.append((node.lineno, node.module))
    return found


def _violations(root: Path, forbidden: tuple[str, ...]) -> list[str]:
    violations = []
    for path in sorted(root.rglob("*.py")):
        for lineno, module in _imports(path):
            if any(module == f or module.startswith(f + ".") for f in forbidden):
                violations.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return violations


def test_kernel_sources_found():
    assert (KERNEL / "domain" / "analytics.py").exists()


def test_kernel_does_not_import_config():
    assert _violations(KERNEL, FORBIDDEN_KERNEL_IMPORTS) == []


def test_domain_is_pure():
    assert _violations(KERNEL / "domain", IMPURE_FOR_DOMAIN) == []


def test_selectors_do_not_import_services():
    assert _violations(KERNEL / "selectors", ("shoptrack_kernel.services",)) == []


class TestInvariantsDeclaration:
    def test_non_empty(self):
        assert len(ALL_KERNEL_INVARIANTS) > 0

    def test_covers_every_member(self):
        assert ALL_KERNEL_INVARIANTS == frozenset(KernelInvariant)

    @pytest.mark.parametrize("invariant", list(KernelInvariant))
    def test_each_documented(self, invariant):
        assert invariant.value == invariant.value.lower()
        assert invariant.name.lower() == invariant.value
