"""
Driver Factory - WebDriver creation for capture sessions.

Builds a Chrome WebDriver with the stability flags captures rely on and a
fixed window size, so that viewport geometry is reproducible between runs.
"""

from typing import Optional, Tuple
from selenium import webdriver
from selenium.webdriver.chrome.options import Options as ChromeOptions

WebDriverType = webdriver.Chrome


def create_driver(
    headless: bool = False,
    window_size: Tuple[int, int] = (1920, 1080),
    profile_path: Optional[str] = None,
) -> WebDriverType:
    """
    Create a Chrome WebDriver for capturing pages.

    Args:
        headless: Run browser in headless mode
        window_size: Browser window (width, height) in pixels
        profile_path: Path to browser profile for session persistence

    Returns:
        Chrome WebDriver instance

    Example:
        >>> driver = create_driver(headless=True)
        >>> driver.get("https://example.com")
    """
    driver = webdriver.Chrome(options=build_chrome_options(headless, window_size, profile_path))

    # Hide the webdriver flag so pages render their normal UI
    driver.execute_cdp_cmd(
        "Page.addScriptToEvaluateOnNewDocument",
        {
            "source": """
                Object.defineProperty(navigator, 'webdriver', {
                    get: () => undefined
                })
            """
        }
    )
    return driver


def build_chrome_options(
    headless: bool = False,
    window_size: Tuple[int, int] = (1920, 1080),
    profile_path: Optional[str] = None,
) -> ChromeOptions:
    options = ChromeOptions()

    if headless:
        options.add_argument("--headless=new")

    if profile_path:
        options.add_argument(f"--user-data-dir={profile_path}")

    width, height = window_size
    options.add_argument(f"--window-size={width},{height}")

    # Common stability options
    options.add_argument("--disable-blink-features=AutomationControlled")
    options.add_argument("--disable-extensions")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option("useAutomationExtension", False)

    return options
