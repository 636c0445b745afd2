from __future__ import annotations

from typing import Any

import pytest
import typer

# Create a CLI application using Typer
app = typer.Typer(add_completion=False)


@app.callback()
def main() -> None:
    """playwright-hog test runner."""


def build_pytest_args(
    *,
    config: str | None = None,
    debug: bool = False,
    tests_path: str = "tests",
    extra: str = "",
) -> list[str]:
    """Translate runner options into a pytest argument list."""
    args = [tests_path]
    if config:
        args += ["--hog-config", config]
    if debug:
        args.append("--hog-debug")
    if extra:
        args += extra.split()
    return args


@app.command()
def run(
    config: str = typer.Option(None, help="Path to the playwright-hog YAML configuration file"),
    debug: bool = typer.Option(False, "--debug", help="Print analytics capture traces"),
    tests_path: str = typer.Option("tests", help="Path to the tests to run"),
    extra: str = typer.Option("", help="Additional arguments for pytest (space-separated)"),
) -> Any:
    """
    Run pytest with the analytics capture options applied.

    Example usage:
        playwright-hog run --config playwright-hog.yaml --debug --extra "--browser firefox -m smoke"
    """
    args = build_pytest_args(config=config, debug=debug, tests_path=tests_path, extra=extra)
    # Exit with pytest's return code
    raise SystemExit(pytest.main(args))


if __name__ == "__main__":
    app()
