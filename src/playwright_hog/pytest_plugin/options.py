import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    """
    Registers custom command-line (CLI) options for pytest.

    Adds options to configure analytics capture:
      --hog-config <path> : Path to the YAML configuration file.
      --hog-debug         : Print capture traces (intercepted requests, extracted events).

    These options are read by the hog_settings fixture.
    """
    g = parser.getgroup("playwright-hog")
    g.addoption(
        "--hog-config",
        action="store",
        default=None,
        help="Path to playwright-hog YAML configuration file",
    )
    g.addoption(
        "--hog-debug",
        action="store_true",
        default=False,
        help="Enable analytics capture debug traces",
    )
