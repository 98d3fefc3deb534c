from __future__ import annotations

import re
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
PACKAGE_DIR = ROOT / "syllabus_app"
ALLOWED_FILES = ("syllabus_app/core/time_provider.py",)

PATTERNS = (
    r"\bdatetime\.now\(",
    r"\bdatetime\.utcnow\(",
    r"\bdate\.today\(",
    r"\bdatetime\.today\(",
)
COMPILED = [re.compile(pattern) for pattern in PATTERNS]


def find_violations(package_dir: Path = PACKAGE_DIR) -> list[tuple[str, int, str]]:
    """Return (path, line, source) for every wall-clock read outside the time provider.

    Column defaults that pass ``datetime.utcnow`` uncalled are allowed.
    """
    violations: list[tuple[str, int, str]] = []
    for file_path in sorted(package_dir.rglob("*.py")):
        relative = file_path.relative_to(package_dir.parent).as_posix()
        if relative in ALLOWED_FILES:
            continue
        for idx, line in enumerate(file_path.read_text(encoding="utf-8").splitlines(), start=1):
            if any(regex.search(line) for regex in COMPILED):
                violations.append((relative, idx, line.strip()))
    return violations


def main() -> int:
    violations = find_violations()
    if violations:
        print("Read the clock through TimeProvider, not directly:")
        for path, line_no, line in violations:
            print(f" - {path}:{line_no}: {line}")
        return 1

    print("No direct datetime usage detected in syllabus_app/.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
