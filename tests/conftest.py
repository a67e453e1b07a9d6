"""
Pytest configuration.

Registers the integration marker and command-line option, and provides
fixtures that create page image files on disk.
"""

import pytest


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against real Supabase / Azure resources"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring real cloud resources"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def make_pages(tmp_path):
    """Factory writing ``count`` non-empty page images into a fresh folder"""
    counter = {"n": 0}

    def _make(count: int, suffix: str = ".jpg", size: int = 128):
        counter["n"] += 1
        folder = tmp_path / f"capture-{counter['n']}"
        folder.mkdir()
        paths = []
        for i in range(count):
            path = folder / f"page-{i:02d}{suffix}"
            path.write_bytes(bytes([i % 256]) * size)
            paths.append(path)
        return paths

    return _make


@pytest.fixture
def invoice_payload():
    """A result payload the OCR worker would write for a one-line invoice"""
    return {
        "vendor": "Acme",
        "date": "2025-01-01",
        "lineItems": [{"desc": "Widget", "qty": 1, "unitPrice": 10.00, "amount": 10.00}],
        "total": 10.00,
        "currency": "USD",
    }
