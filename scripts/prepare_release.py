#!/usr/bin/env python3
"""Prepare a release of the Pesapal gateway.

Builds the distribution, bumps the ``version`` in ``pyproject.toml``
and prints the remaining manual steps (commit, tag, push, GitHub
release).  Nothing is committed or pushed by the script itself.

Usage (run from the repository root)::

    python scripts/prepare_release.py            # patch
    python scripts/prepare_release.py minor
    python scripts/prepare_release.py major --skip-build
"""

import argparse
import re
import subprocess
import sys
from pathlib import Path
from typing import Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
PYPROJECT = REPO_ROOT / "pyproject.toml"

PARTS = ("patch", "minor", "major")
_VERSION_RE = re.compile(r'^(version\s*=\s*")(\d+)\.(\d+)\.(\d+)(")', re.MULTILINE)


def bump_version(version: str, part: str) -> str:
    """Return ``version`` bumped by ``part`` (patch, minor or major)."""
    try:
        major, minor, patch = (int(x) for x in version.split("."))
    except ValueError:
        raise ValueError(f"unsupported version format: {version!r}")
    if part == "major":
        return f"{major + 1}.0.0"
    if part == "minor":
        return f"{major}.{minor + 1}.0"
    if part == "patch":
        return f"{major}.{minor}.{patch + 1}"
    raise ValueError(f"unknown version part: {part!r}")


def read_version(pyproject: Optional[Path] = None) -> str:
    pyproject = pyproject or PYPROJECT
    match = _VERSION_RE.search(pyproject.read_text(encoding="utf-8"))
    if not match:
        raise ValueError(f"no version found in {pyproject}")
    return ".".join(match.group(2, 3, 4))


def write_version(new_version: str, pyproject: Optional[Path] = None) -> None:
    pyproject = pyproject or PYPROJECT
    text = pyproject.read_text(encoding="utf-8")
    text, count = _VERSION_RE.subn(lambda m: f"{m.group(1)}{new_version}{m.group(5)}", text, count=1)
    if not count:
        raise ValueError(f"no version found in {pyproject}")
    pyproject.write_text(text, encoding="utf-8")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Prepare a release of the Pesapal gateway")
    parser.add_argument("part", nargs="?", default="patch", choices=PARTS, help="Version part to bump")
    parser.add_argument("--skip-build", action="store_true", help="Do not run 'python -m build'")
    args = parser.parse_args(argv)

    print(f"🚀 Preparing {args.part} release for pesapal-gateway")
    try:
        if not args.skip_build:
            print("📦 Building project...")
            subprocess.run([sys.executable, "-m", "build"], cwd=REPO_ROOT, check=True)

        print(f"📈 Bumping {args.part} version...")
        new_version = bump_version(read_version(), args.part)
        write_version(new_version)
    except (OSError, ValueError, subprocess.CalledProcessError) as e:
        print(f"❌ Release preparation failed: {e}", file=sys.stderr)
        return 1

    print(f"✅ Version updated to v{new_version}")
    print()
    print("Next steps:")
    print("1. Review the changes")
    print(f'2. Commit your changes: git add . && git commit -m "Release v{new_version}"')
    print(f"3. Create and push tag: git tag v{new_version} && git push origin v{new_version}")
    print("4. Create a GitHub release to trigger automatic publishing")
    return 0


if __name__ == "__main__":
    sys.exit(main())
