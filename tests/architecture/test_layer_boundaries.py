"""
Import-boundary enforcement for the four packages.

1. Engine purity      -- mfg_engines/** may import only the kernel's domain
                         types, exceptions and logging; never the database,
                         ORM, services or config layers.
2. Engine no-impure   -- mfg_engines/** may not read the wall clock or the
                         environment.
3. Kernel direction   -- mfg_kernel/** may not import services or config,
                         and reaches mfg_engines only from the container
                         weight service.
4. Config direction   -- mfg_config/** may not import engines or services.

All scanning is done via AST.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _relative(path: Path) -> str:
    return path.relative_to(ROOT).as_posix()


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *path*."""
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module and node.level == 0:
                results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    for prefix in prefixes:
        if module == prefix or module.startswith(f"{prefix}."):
            return True
    return False


def _violations(package: str, forbidden: tuple[str, ...], allowed_files=()) -> list[str]:
    found: list[str] = []
    for path in _python_files(package):
        if _relative(path) in allowed_files:
            continue
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"  {_relative(path)}:{lineno} imports '{module}'")
    return found


class TestEnginePurity:
    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "sqlite3",
        "yaml",
        "mfg_kernel.db",
        "mfg_kernel.models",
        "mfg_kernel.services",
        "mfg_kernel.selectors",
        "mfg_services",
        "mfg_config",
    )

    def test_engines_have_no_forbidden_imports(self):
        violations = _violations("mfg_engines", self.FORBIDDEN_PREFIXES)

        assert not violations, (
            "mfg_engines/** must not import persistence, services or config:\n"
            + "\n".join(violations)
        )

    def test_engines_reach_kernel_only_through_public_seams(self):
        allowed = (
            "mfg_kernel.domain",
            "mfg_kernel.exceptions",
            "mfg_kernel.logging_config",
        )
        violations = []
        for path in _python_files("mfg_engines"):
            for lineno, module in _extract_imports(path):
                if _matches_any(module, ("mfg_kernel",)) and not _matches_any(module, allowed):
                    violations.append(f"  {_relative(path)}:{lineno} imports '{module}'")

        assert not violations, "\n".join(violations)


class TestEngineNoImpureFunctions:
    FORBIDDEN_CALLS = frozenset({
        "datetime.now",
        "datetime.utcnow",
        "date.today",
        "time.time",
        "os.environ",
        "os.getenv",
    })

    def test_no_wall_clock_or_environment(self):
        violations = []
        for path in _python_files("mfg_engines"):
            tree = ast.parse(path.read_text(), filename=str(path))
            for node in ast.walk(tree):
                if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
                    ref = f"{node.value.id}.{node.attr}"
                    if ref in self.FORBIDDEN_CALLS:
                        violations.append(f"  {_relative(path)}:{node.lineno} uses {ref}")

        assert not violations, "\n".join(violations)


class TestKernelDirection:
    def test_kernel_does_not_import_upward(self):
        violations = _violations("mfg_kernel", ("mfg_services", "mfg_config"))

        assert not violations, "\n".join(violations)

    def test_only_weight_service_uses_engines(self):
        violations = _violations(
            "mfg_kernel",
            ("mfg_engines",),
            allowed_files=("mfg_kernel/services/container_weight_service.py",),
        )

        assert not violations, "\n".join(violations)


class TestConfigDirection:
    def test_config_does_not_import_engines_or_services(self):
        violations = _violations("mfg_config", ("mfg_engines", "mfg_services"))

        assert not violations, "\n".join(violations)
