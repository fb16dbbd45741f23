"""
tests/conftest.py – pytest plugin: --integration flag + skip logic.
"""

from __future__ import annotations

import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="Run integration tests against Hyperliquid testnet",
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    if config.getoption("--integration"):
        return
    skip_integration = pytest.mark.skip(reason="pass --integration to run against testnet")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
