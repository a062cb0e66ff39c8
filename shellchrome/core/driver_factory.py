"""
Driver Factory - Chrome WebDriver creation.

Builds the Chrome instance a session drives. DevTools commands
(accessibility tree, box models, target listing) go through the
driver's ``execute_cdp_cmd``, so only Chromium-based browsers are supported.
"""

from typing import Optional
import logging

from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions

from shellchrome.core.errors import translate_driver_errors

logger = logging.getLogger(__name__)

# Type alias for driver
WebDriverType = webdriver.Chrome


def create_driver(
    headless: bool = True,
    profile_path: Optional[str] = None,
    window_size: str = "1280,900",
    page_load_timeout: int = 30,
) -> WebDriverType:
    """
    Create a Chrome WebDriver instance.

    Args:
        headless: Run browser in headless mode
        profile_path: Path to browser profile for session persistence
        window_size: Initial window size as "width,height"
        page_load_timeout: Seconds before a navigation raises a timeout

    Returns:
        Chrome WebDriver with browser console logging enabled

    Example:
        >>> driver = create_driver(headless=True)
        >>> driver.get("https://example.com")
    """
    options = build_options(headless=headless, profile_path=profile_path, window_size=window_size)

    with translate_driver_errors("Start browser"):
        driver = webdriver.Chrome(options=options)
        driver.set_page_load_timeout(page_load_timeout)

    logger.info(f"[DriverFactory] Chrome started ({'headless' if headless else 'headed'})")
    return driver


def build_options(
    headless: bool = True,
    profile_path: Optional[str] = None,
    window_size: str = "1280,900",
) -> ChromeOptions:
    """Chrome options shared by every session."""
    options = ChromeOptions()

    if headless:
        options.add_argument("--headless=new")

    if profile_path:
        options.add_argument(f"--user-data-dir={profile_path}")

    # Common stability options
    options.add_argument("--disable-extensions")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument(f"--window-size={window_size}")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])

    # Console messages and network events for get_log("browser") / get_log("performance")
    options.set_capability("goog:loggingPrefs", {"browser": "ALL", "performance": "ALL"})

    return options
