"""Frames Page Object: the /frames and /nestedframes pages."""

from playwright.sync_api import FrameLocator, Locator

from tests.pages.base_page import BasePage


class FramesPage(BasePage):
    URL_PATH = "/frames"

    def frame(self, frame_id: str) -> FrameLocator:
        return self.page.frame_locator(f"#{frame_id}")

    def frame_heading(self, frame_id: str) -> Locator:
        return self.frame(frame_id).locator("#sampleHeading")


class NestedFramesPage(BasePage):
    URL_PATH = "/nestedframes"

    @property
    def parent_frame(self) -> FrameLocator:
        return self.page.frame_locator("#frame1")

    @property
    def child_frame(self) -> FrameLocator:
        return self.parent_frame.frame_locator("iframe")
