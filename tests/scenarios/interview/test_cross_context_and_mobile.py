"""
Shared state across pages, embedded content and environment emulation.

Key Concepts Demonstrated:
- Pages of one context share localStorage per origin
- Device descriptors for a mobile context
- Overriding Date with add_init_script()
- Changing geolocation on a live context
"""

from datetime import datetime, timezone

import pytest
from playwright.sync_api import BrowserContext, Page, Playwright, expect

from e2e_runner.projects import device_context_options
from tests.pages.frames_page import FramesPage

pytestmark = pytest.mark.e2e

FUTURE_MS = int(datetime(2030, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)

FROZEN_DATE = """
{
    const RealDate = Date;
    Date = class extends RealDate {
        constructor(...args) {
            if (args.length === 0) return new RealDate(%d);
            return new RealDate(...args);
        }
        static now() {
            return %d;
        }
    };
}
""" % (FUTURE_MS, FUTURE_MS)

READ_POSITION = """
() => new Promise(resolve => navigator.geolocation.getCurrentPosition(
    position => resolve({lat: position.coords.latitude, lng: position.coords.longitude})
))
"""


class TestSharedContext:
    def test_local_storage_shared_between_pages(self, context: BrowserContext, base_url: str):
        # Arrange
        books = context.new_page()
        profile = context.new_page()
        books.goto(f"{base_url}/books", wait_until="domcontentloaded")
        profile.goto(f"{base_url}/profile", wait_until="domcontentloaded")

        # Act
        books.evaluate("localStorage.setItem('token', 'synced-token')")

        # Assert
        assert profile.evaluate("localStorage.getItem('token')") == "synced-token"

    def test_embedded_frame(self, frames_page: FramesPage):
        # Arrange
        frames_page.navigate()

        # Assert
        expect(frames_page.frame_heading("frame1")).to_have_text("This is a sample page")


class TestEnvironment:
    def test_iphone_12_viewport(self, playwright: Playwright, new_context, base_url: str, browser_name: str):
        if browser_name == "firefox":
            pytest.skip("Firefox does not support mobile emulation")

        # Arrange
        page = new_context(**device_context_options(playwright.devices, "iPhone 12")).new_page()

        # Act
        page.goto(f"{base_url}/", wait_until="domcontentloaded")

        # Assert
        assert page.viewport_size["width"] == 390

    def test_future_date(self, page: Page, base_url: str):
        # Arrange
        page.add_init_script(FROZEN_DATE)

        # Act
        page.goto(f"{base_url}/date-picker", wait_until="domcontentloaded")

        # Assert
        assert page.evaluate("Date.now()") == FUTURE_MS
        assert page.evaluate("new Date().getUTCFullYear()") == 2030

    def test_geolocation_london(self, page: Page, context: BrowserContext, base_url: str):
        # Arrange
        context.grant_permissions(["geolocation"])
        context.set_geolocation({"latitude": 51.5074, "longitude": -0.1278})
        page.goto(f"{base_url}/", wait_until="domcontentloaded")

        # Act
        location = page.evaluate(READ_POSITION)

        # Assert
        assert location == {"lat": 51.5074, "lng": -0.1278}
