import ast
import re
import sys
import tomllib
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
PACKAGE_DIR = ROOT / "src" / "feedpub"
TESTS_DIR = ROOT / "tests"

# Distribution name for import names that differ from it.
DISTRIBUTION_FOR_IMPORT = {"yaml": "pyyaml"}


def _imported_roots(base: Path) -> set[str]:
    roots: set[str] = set()
    for source in base.rglob("*.py"):
        tree = ast.parse(source.read_text(encoding="utf-8"), filename=str(source))
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                roots.update(alias.name.partition(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                roots.add(node.module.partition(".")[0])
    return roots


def _third_party(roots: set[str]) -> set[str]:
    ignored = set(sys.stdlib_module_names) | {"__future__", "feedpub"}
    return {DISTRIBUTION_FOR_IMPORT.get(root, root).lower() for root in roots - ignored}


def _distribution(requirement: str) -> str:
    return re.split(r"[\s;<>=!~\[]", requirement.strip(), maxsplit=1)[0].lower()


class DeclaredDependencyTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        project = tomllib.loads((ROOT / "pyproject.toml").read_text(encoding="utf-8"))["project"]
        cls.runtime = {_distribution(item) for item in project.get("dependencies", [])}
        cls.test_extra = {
            _distribution(item) for item in project.get("optional-dependencies", {}).get("test", [])
        }

    def test_package_imports_are_runtime_dependencies(self) -> None:
        undeclared = sorted(_third_party(_imported_roots(PACKAGE_DIR)) - self.runtime)
        self.assertEqual(undeclared, [], f"pyproject.toml 未宣告執行期依賴：{', '.join(undeclared)}")

    def test_test_imports_are_declared(self) -> None:
        undeclared = sorted(_third_party(_imported_roots(TESTS_DIR)) - self.runtime - self.test_extra)
        self.assertEqual(undeclared, [], f"pyproject.toml 的 test extra 缺少：{', '.join(undeclared)}")

    def test_requirements_file_matches_runtime_dependencies(self) -> None:
        listed = {
            _distribution(line)
            for line in (ROOT / "requirements.txt").read_text(encoding="utf-8").splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        }
        self.assertEqual(listed, self.runtime)


if __name__ == "__main__":
    unittest.main()
