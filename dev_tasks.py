#!/usr/bin/env python3
"""
Development tasks for resourceql.

    python dev_tasks.py test                      # in-memory SQLite
    python dev_tasks.py test --db postgresql+asyncpg://user:pw@localhost/resourceql_test
    python dev_tasks.py check                     # format check, lint, tests
"""

import argparse
import os
import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SOURCES = ["resourceql", "tests"]


def run(*args, env=None):
    print("Running:", " ".join(args))
    return subprocess.run(args, cwd=ROOT, env=env).returncode == 0


def clean(_):
    for name in ["build", "dist", ".pytest_cache", ".mypy_cache", "htmlcov", ".coverage"]:
        path = ROOT / name
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
        elif path.exists():
            path.unlink()
    for path in ROOT.glob("*.egg-info"):
        shutil.rmtree(path, ignore_errors=True)
    for path in ROOT.rglob("__pycache__"):
        shutil.rmtree(path, ignore_errors=True)
    return True


def format_code(opts):
    extra = ["--check"] if opts.check else []
    isort_extra = ["--check-only"] if opts.check else []
    return run("black", *extra, *SOURCES) & run("isort", *isort_extra, *SOURCES)


def lint(_):
    return run("mypy", "resourceql") & run("flake8", *SOURCES)


def test(opts):
    env = dict(os.environ)
    if opts.db:
        # picked up by the engine fixture in tests/conftest.py
        env["RESOURCEQL_TEST_DATABASE_URL"] = opts.db
    args = ["pytest", "tests", "-q"]
    if opts.cov:
        args += ["--cov=resourceql", "--cov-report=term-missing"]
    if opts.k:
        args += ["-k", opts.k]
    return run(sys.executable, "-m", *args, env=env)


def build(opts):
    clean(opts)
    return run(sys.executable, "-m", "build") and run(sys.executable, "-m", "twine", "check", "dist/*")


def check(opts):
    opts.check = True
    return format_code(opts) & lint(opts) & test(opts)


TASKS = {
    "clean": clean,
    "format": format_code,
    "lint": lint,
    "test": test,
    "build": build,
    "check": check,
}


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("task", choices=sorted(TASKS))
    parser.add_argument("--db", help="async SQLAlchemy URL of a database to test against")
    parser.add_argument("--cov", action="store_true", help="collect coverage for the resourceql package")
    parser.add_argument("--check", action="store_true", help="format: report instead of rewriting")
    parser.add_argument("-k", help="pytest -k expression")
    opts = parser.parse_args(argv)
    sys.exit(0 if TASKS[opts.task](opts) else 1)


if __name__ == "__main__":
    main()
