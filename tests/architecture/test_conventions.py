"""
Convention enforcement tests.

Catch what import-based layer rules cannot: frozen dataclasses, tuple
collections on frozen models, silent exception swallowing and port
contracts.
"""

import ast
import inspect
from pathlib import Path

import pytest

pytestmark = pytest.mark.architecture

SRC_ROOT = Path(__file__).parent.parent.parent / "src" / "agentflow"

DOMAIN_MODEL_FILES = ("models.py", "events.py", "qa_policy.py", "prompts.py")


def dataclass_info(filepath: Path) -> list[tuple[ast.ClassDef, bool]]:
    """Return (class node, is_frozen) for each @dataclass in a file."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"))
    results = []

    for node in ast.walk(tree):
        if not isinstance(node, ast.ClassDef):
            continue
        for decorator in node.decorator_list:
            if isinstance(decorator, ast.Name) and decorator.id == "dataclass":
                results.append((node, False))
            elif (
                isinstance(decorator, ast.Call)
                and isinstance(decorator.func, ast.Name)
                and decorator.func.id == "dataclass"
            ):
                frozen = any(
                    kw.arg == "frozen"
                    and isinstance(kw.value, ast.Constant)
                    and kw.value.value is True
                    for kw in decorator.keywords
                )
                results.append((node, frozen))
    return results


class TestFrozenDataclassConvention:
    """Domain values are immutable."""

    @pytest.mark.parametrize("filename", DOMAIN_MODEL_FILES)
    def test_domain_dataclasses_are_frozen(self, filename: str) -> None:
        """Every dataclass in the domain model files is frozen."""
        violations = [
            node.name
            for node, frozen in dataclass_info(SRC_ROOT / "domain" / filename)
            if not frozen
        ]

        assert not violations, f"Domain dataclasses must be frozen: {violations}"

    @pytest.mark.parametrize("filename", DOMAIN_MODEL_FILES)
    def test_frozen_fields_use_tuples(self, filename: str) -> None:
        """Frozen dataclass fields use tuple[], never list[]."""
        path = SRC_ROOT / "domain" / filename
        source = path.read_text(encoding="utf-8")
        violations = []

        for node, frozen in dataclass_info(path):
            if not frozen:
                continue
            for item in node.body:
                if not isinstance(item, ast.AnnAssign):
                    continue
                annotation = ast.get_source_segment(source, item.annotation) or ""
                if "list[" in annotation.lower():
                    violations.append(f"{node.name}.{getattr(item.target, 'id', '?')}")

        assert not violations, f"Use tuple[] on frozen dataclasses: {violations}"


class TestNoSilentExceptionSwallowing:
    """No 'except ...: pass' anywhere in src/agentflow."""

    def test_no_except_pass(self) -> None:
        """Handlers must log, translate or re-raise."""
        violations = []

        for py_file in SRC_ROOT.rglob("*.py"):
            source = py_file.read_text(encoding="utf-8")
            for node in ast.walk(ast.parse(source)):
                if not isinstance(node, ast.ExceptHandler) or len(node.body) != 1:
                    continue
                stmt = node.body[0]
                is_ellipsis = (
                    isinstance(stmt, ast.Expr)
                    and isinstance(stmt.value, ast.Constant)
                    and stmt.value.value is ...
                )
                if isinstance(stmt, ast.Pass) or is_ellipsis:
                    rel_path = py_file.relative_to(SRC_ROOT.parent.parent)
                    violations.append(f"{rel_path}:{node.lineno}")

        assert not violations, "Silent exception swallowing found:\n" + "\n".join(
            f"  - {v}" for v in violations
        )


class TestInterfaceConventions:
    """Port naming and contract conventions."""

    def _ports(self) -> list[tuple[str, type]]:
        from agentflow.domain import interfaces

        return [
            (name, obj)
            for name, obj in inspect.getmembers(interfaces, inspect.isclass)
            if obj.__module__ == interfaces.__name__ and inspect.isabstract(obj)
        ]

    def test_all_ports_end_with_interface(self) -> None:
        """All ABCs in domain/interfaces.py end with 'Interface'."""
        violations = [name for name, _ in self._ports() if not name.endswith("Interface")]

        assert self._ports()
        assert not violations, f"Abstract classes should end with 'Interface': {violations}"

    def test_all_port_methods_are_abstract(self) -> None:
        """Every public method on a port is abstract."""
        violations = [
            f"{name}.{method_name}"
            for name, cls in self._ports()
            for method_name, method in inspect.getmembers(cls, inspect.isfunction)
            if not method_name.startswith("_")
            and not getattr(method, "__isabstractmethod__", False)
        ]

        assert not violations, f"Public port methods must be abstract: {violations}"

    def test_session_stores_implement_port(self) -> None:
        """Both session stores implement every abstract method."""
        from agentflow.domain.interfaces import SessionStoreInterface
        from agentflow.infrastructure.persistence.memory import InMemorySessionStore
        from agentflow.infrastructure.persistence.sessions import FilesystemSessionStore

        for impl_cls in (FilesystemSessionStore, InMemorySessionStore):
            assert issubclass(impl_cls, SessionStoreInterface)
            assert not inspect.isabstract(impl_cls), impl_cls.__name__
