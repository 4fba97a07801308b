"""
Kernel boundary and invariants contract.

1. inventory_kernel/** may NOT import inventory_services or inventory_config.
   The kernel never depends upward.

2. ORM models are a storage detail. Kernel services and selectors, and the
   outer packages, reach the tables only through a storage strategy.

3. The kernel invariants declaration is complete.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

from inventory_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]

MODELS_MODULE = "inventory_kernel.models"


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """(line_number, module) for every import in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(files: list[Path], prefixes: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in files:
        for lineno, module in _extract_imports(filepath):
            if any(module == p or module.startswith(f"{p}.") for p in prefixes):
                found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:

    def test_kernel_does_not_import_outer_packages(self):
        violations = _violations(_python_files("inventory_kernel"), FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation, inventory_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


class TestModelImportGate:

    def test_services_and_selectors_use_storage(self):
        files = _python_files("inventory_kernel/services") + _python_files(
            "inventory_kernel/selectors"
        )
        violations = _violations(files, (MODELS_MODULE,))
        assert not violations, "\n".join(violations)

    def test_outer_packages_use_storage(self):
        files = _python_files("inventory_services") + _python_files("inventory_config")
        violations = _violations(files, (MODELS_MODULE,))
        assert not violations, "\n".join(violations)


class TestInvariantCatalogue:

    def test_every_invariant_listed(self):
        assert ALL_KERNEL_INVARIANTS == frozenset(KernelInvariant)
