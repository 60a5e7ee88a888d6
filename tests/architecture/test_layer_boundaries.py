"""
Layer boundary contract.

1. books_kernel/** may NOT import books_config.  The kernel never
   depends upward; bridges in books_config translate config into kernel
   objects.
2. books_kernel/domain/** is pure: no SQLAlchemy and no imports from the
   persistence or service layers.
3. Services and selectors reach the database only through the storage
   seam, so they never import SQLAlchemy themselves.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if any(module == prefix or module.startswith(f"{prefix}.") for prefix in forbidden):
                found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:
    def test_kernel_does_not_import_config(self):
        violations = _violations("books_kernel", ("books_config",))
        assert not violations, "books_kernel must not import books_config:\n" + "\n".join(violations)


class TestDomainIsPure:
    FORBIDDEN = (
        "sqlalchemy",
        "books_kernel.db",
        "books_kernel.models",
        "books_kernel.storage",
        "books_kernel.services",
        "books_kernel.selectors",
    )

    def test_domain_imports(self):
        violations = _violations("books_kernel/domain", self.FORBIDDEN)
        assert not violations, "domain must stay pure:\n" + "\n".join(violations)


class TestPersistenceBehindStorage:
    def test_services_do_not_import_sqlalchemy(self):
        violations = _violations("books_kernel/services", ("sqlalchemy",))
        assert not violations, "\n".join(violations)

    def test_selectors_do_not_import_sqlalchemy(self):
        violations = _violations("books_kernel/selectors", ("sqlalchemy",))
        assert not violations, "\n".join(violations)
