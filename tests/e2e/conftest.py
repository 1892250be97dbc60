"""Pytest configuration and fixtures for E2E tests."""
import os

import httpx
import pytest
from playwright.sync_api import Page


# Test configuration
BASE_URL = os.getenv("E2E_BASE_URL", "http://localhost:3000")
TEST_TIMEOUT = 30000  # 30 seconds


def server_is_up() -> bool:
    try:
        return httpx.get(f"{BASE_URL}/health/live", timeout=2.0).status_code == 200
    except httpx.HTTPError:
        return False


# Note: pytest-playwright provides these built-in options:
# --headed: Run tests in headed mode (visible browser)
# --slowmo: Slow down operations by N milliseconds
# --browser: Choose browser (chromium, firefox, webkit)


def pytest_collection_modifyitems(config, items):
    if server_is_up():
        return
    skip = pytest.mark.skip(reason=f"no server running at {BASE_URL}")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def chat_page(page: Page) -> Page:
    """Navigate to the chat page and return the page object."""
    page.goto(BASE_URL)
    page.wait_for_load_state("networkidle")
    page.set_default_timeout(TEST_TIMEOUT)
    return page


@pytest.fixture
def test_message():
    """Standard test message."""
    return "What is the refund policy?"
