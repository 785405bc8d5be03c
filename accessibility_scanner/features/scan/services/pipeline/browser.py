from contextlib import contextmanager
from typing import Callable, Iterator

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from webdriver_manager.chrome import ChromeDriverManager

from accessibility_scanner.platform.config import Settings
from accessibility_scanner.platform.logger import get_logger

logger = get_logger(__name__)

DriverFactory = Callable[[Settings], webdriver.Chrome]


def build_driver(settings: Settings) -> webdriver.Chrome:
    """Start an isolated headless Chrome with its own throwaway profile."""
    chrome_options = Options()
    if settings.BROWSER_HEADLESS:
        chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument(f"--window-size={settings.BROWSER_WINDOW_SIZE}")

    if settings.CHROMEDRIVER_PATH:
        driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        return webdriver.Chrome(service=driver_service, options=chrome_options)

    if settings.CHROMEDRIVER_AUTO_INSTALL:
        driver_service = Service(executable_path=ChromeDriverManager().install())
        return webdriver.Chrome(service=driver_service, options=chrome_options)

    return webdriver.Chrome(options=chrome_options)


@contextmanager
def browser_session(settings: Settings, driver_factory: DriverFactory = build_driver) -> Iterator[webdriver.Chrome]:
    """
    Yield a browser session that is always quit on exit, whether the body
    returns or raises.
    """
    driver = driver_factory(settings)
    try:
        yield driver
    finally:
        try:
            driver.quit()
        except Exception as e:
            logger.warning(f"Error while closing browser session: {e}")
