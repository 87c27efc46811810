import importlib.util
import sys
from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixture_data() -> Path:
    return FIXTURES / "data"


@pytest.fixture
def import_generated(tmp_path, monkeypatch):
    """Write generated source to disk and import it as a module."""
    counter = iter(range(1000))

    def _import(source: str):
        name = f"generated_{next(counter)}"
        path = tmp_path / f"{name}.py"
        path.write_text(source, encoding="utf-8")
        spec = importlib.util.spec_from_file_location(name, path)
        module = importlib.util.module_from_spec(spec)
        monkeypatch.setitem(sys.modules, name, module)
        spec.loader.exec_module(module)
        return module

    return _import
