"""Regression tests for importing the data layer without the HTTP stack."""

from __future__ import annotations

import importlib
import sys
import types
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class CLIImportTests(unittest.TestCase):
    def tearDown(self) -> None:
        self._clear_people_modules()

    @staticmethod
    def _clear_people_modules() -> None:
        for name in [m for m in list(sys.modules.keys()) if m == "people" or m.startswith("people.")]:
            sys.modules.pop(name, None)

    def test_import_registry_without_fastapi(self) -> None:
        """Importing people.registry should succeed even if FastAPI is unavailable."""

        self._clear_people_modules()

        fastapi_module: types.ModuleType | None = sys.modules.pop("fastapi", None)
        sys.modules["fastapi"] = None  # type: ignore[assignment]
        try:
            registry_module = importlib.import_module("people.registry")
            self.assertTrue(hasattr(registry_module, "PeopleRegistry"))

            people_module = sys.modules.get("people")
            self.assertIsNotNone(people_module)
            self.assertTrue(hasattr(people_module, "Database"))
            self.assertNotIn("people.service", sys.modules)
        finally:
            sys.modules.pop("fastapi", None)
            if fastapi_module is not None:
                sys.modules["fastapi"] = fastapi_module


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
