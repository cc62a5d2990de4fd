"""
Import-boundary enforcement for the four top-level packages.

1. Engine purity      - garment_engines/** may not import DB, ORM, models,
                        services or config.
2. Engine no-impure   - garment_engines/** and garment_services/** may not
                        read the wall clock or the environment directly.
3. Kernel at the base - garment_kernel/** imports no other garment package.
4. Config entrypoint  - only garment_config/__init__.py reads the environment.
5. Log extras         - no ``extra=`` key may shadow a LogRecord attribute.

All scanning is done via AST - these tests are read-only.
"""

import ast
import logging
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _extract_attribute_calls(filepath: Path) -> list[tuple[int, str]]:
    """Two-level attribute references, e.g. datetime.now or os.environ."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))
    return [
        (node.lineno, f"{node.value.id}.{node.attr}")
        for node in ast.walk(tree)
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name)
    ]


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == prefix or module.startswith(f"{prefix}.") for prefix in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if _matches_any(module, forbidden):
                found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestEnginePurity:
    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "yaml",
        "garment_kernel.models",
        "garment_kernel.db",
        "garment_kernel.services",
        "garment_services",
        "garment_config",
    )

    def test_engine_files_have_no_forbidden_imports(self):
        violations = _violations("garment_engines", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "garment_engines/** must stay free of I/O layers:\n" + "\n".join(violations)
        )


class TestNoImpureCalls:
    IMPURE = {"datetime.now", "datetime.utcnow", "date.today", "time.time", "os.environ", "os.getenv"}

    def test_clock_and_environment_are_injected(self):
        violations = [
            f"  {filepath.relative_to(ROOT)}:{lineno} uses {ref}"
            for package in ("garment_engines", "garment_services")
            for filepath in _python_files(package)
            for lineno, ref in _extract_attribute_calls(filepath)
            if ref in self.IMPURE
        ]
        assert not violations, (
            "Use the injected Clock / ErpConfig instead:\n" + "\n".join(violations)
        )


class TestKernelIsTheBase:
    def test_kernel_imports_no_upper_layer(self):
        violations = _violations(
            "garment_kernel", ("garment_engines", "garment_services", "garment_config")
        )
        assert not violations, "\n".join(violations)

    def test_config_does_not_import_services(self):
        violations = _violations("garment_config", ("garment_services",))
        assert not violations, "\n".join(violations)


class TestConfigEntrypoint:
    def test_only_entrypoint_reads_environment(self):
        entrypoint = ROOT / "garment_config" / "__init__.py"
        readers = [
            str(filepath.relative_to(ROOT))
            for package in ("garment_kernel", "garment_engines", "garment_services", "garment_config")
            for filepath in _python_files(package)
            if filepath != entrypoint
            and any(ref in {"os.environ", "os.getenv"} for _, ref in _extract_attribute_calls(filepath))
        ]
        assert readers == []


class TestLogExtraKeys:
    """``extra=`` keys that collide with LogRecord attributes raise KeyError at log time."""

    RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

    def _extra_keys(self, filepath: Path) -> list[tuple[int, str]]:
        tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))
        found = []
        for node in ast.walk(tree):
            if not isinstance(node, ast.Call):
                continue
            for keyword in node.keywords:
                if keyword.arg == "extra" and isinstance(keyword.value, ast.Dict):
                    found.extend(
                        (key.lineno, key.value)
                        for key in keyword.value.keys
                        if isinstance(key, ast.Constant) and isinstance(key.value, str)
                    )
        return found

    def test_no_reserved_record_attributes(self):
        violations = [
            f"  {filepath.relative_to(ROOT)}:{lineno} logs reserved key '{key}'"
            for package in ("garment_kernel", "garment_engines", "garment_services", "garment_config")
            for filepath in _python_files(package)
            for lineno, key in self._extra_keys(filepath)
            if key in self.RESERVED
        ]
        assert not violations, "\n".join(violations)
