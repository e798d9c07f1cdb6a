"""
Shared pytest fixtures for the demoqa scenario suite.

Browser fixtures (``browser``, ``context``, ``page``, ``new_context``) come
from the ``e2e_runner.plugin`` pytest plugin. This module adds what the
scenarios share on top of them: page objects bound to the configured base
URL and factories for generated test data.

Key Concepts Demonstrated:
- Fixture dependencies (page objects built on the plugin's page fixture)
- Test data factories with Faker
- Temporary files for upload scenarios
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from faker import Faker
from playwright.sync_api import Page

from tests.pages.alerts_page import AlertsPage
from tests.pages.books_page import BooksPage
from tests.pages.browser_windows_page import BrowserWindowsPage
from tests.pages.dynamic_properties_page import DynamicPropertiesPage
from tests.pages.frames_page import FramesPage, NestedFramesPage
from tests.pages.home_page import HomePage
from tests.pages.practice_form_page import PracticeFormPage
from tests.pages.text_box_page import TextBoxPage
from tests.pages.web_tables_page import WebTablesPage
from tests.pages.widgets_page import DatePickerPage, ProgressBarPage, SelectMenuPage, SliderPage

# Initialize Faker for generating test data
fake = Faker()


# -----------------------------------------------------------------------------
# Target Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def base_url(target_url: str | None) -> str:
    """Base URL every page object navigates relative to."""
    return target_url or "https://demoqa.com"


# -----------------------------------------------------------------------------
# Page Object Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def home_page(page: Page, base_url: str) -> HomePage:
    return HomePage(page, base_url)


@pytest.fixture
def text_box_page(page: Page, base_url: str) -> TextBoxPage:
    return TextBoxPage(page, base_url)


@pytest.fixture
def practice_form_page(page: Page, base_url: str) -> PracticeFormPage:
    return PracticeFormPage(page, base_url)


@pytest.fixture
def web_tables_page(page: Page, base_url: str) -> WebTablesPage:
    return WebTablesPage(page, base_url)


@pytest.fixture
def alerts_page(page: Page, base_url: str) -> AlertsPage:
    return AlertsPage(page, base_url)


@pytest.fixture
def dynamic_properties_page(page: Page, base_url: str) -> DynamicPropertiesPage:
    return DynamicPropertiesPage(page, base_url)


@pytest.fixture
def books_page(page: Page, base_url: str) -> BooksPage:
    return BooksPage(page, base_url)


@pytest.fixture
def browser_windows_page(page: Page, base_url: str) -> BrowserWindowsPage:
    return BrowserWindowsPage(page, base_url)


@pytest.fixture
def frames_page(page: Page, base_url: str) -> FramesPage:
    return FramesPage(page, base_url)


@pytest.fixture
def nested_frames_page(page: Page, base_url: str) -> NestedFramesPage:
    return NestedFramesPage(page, base_url)


@pytest.fixture
def progress_bar_page(page: Page, base_url: str) -> ProgressBarPage:
    return ProgressBarPage(page, base_url)


@pytest.fixture
def select_menu_page(page: Page, base_url: str) -> SelectMenuPage:
    return SelectMenuPage(page, base_url)


@pytest.fixture
def slider_page(page: Page, base_url: str) -> SliderPage:
    return SliderPage(page, base_url)


@pytest.fixture
def date_picker_page(page: Page, base_url: str) -> DatePickerPage:
    return DatePickerPage(page, base_url)


# -----------------------------------------------------------------------------
# Test Data Factories
# -----------------------------------------------------------------------------

@pytest.fixture
def person_factory() -> Callable[..., dict[str, Any]]:
    """
    Factory fixture for generated person data.

    Returns a function that builds a dictionary with realistic values for
    the demoqa forms; keyword arguments override any generated field.

    Example:
        def test_something(person_factory):
            person = person_factory(first_name="Ada")
    """

    def _create_person(**kwargs) -> dict[str, Any]:
        person = {
            "first_name": fake.first_name(),
            "last_name": fake.last_name(),
            "email": fake.email(),
            "gender": 1,
            "mobile": fake.numerify("##########"),
            "age": fake.random_int(min=18, max=70),
            "salary": fake.random_int(min=1000, max=20000),
            "department": fake.job()[:25],
            "address": fake.street_address(),
            "permanent_address": fake.address().replace("\n", ", "),
        }
        person["full_name"] = f"{person['first_name']} {person['last_name']}"
        person.update(kwargs)
        return person

    return _create_person


@pytest.fixture
def upload_file_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture that writes a small file to upload."""

    def _create_file(name: str = "upload.txt", content: str = "demoqa upload") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _create_file
