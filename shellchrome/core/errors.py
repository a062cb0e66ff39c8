"""
Error taxonomy shared by every layer.

Strategy-level failures are recovered inside the resolver and the
interaction driver; only the exceptions below reach the command layer.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from selenium.common.exceptions import (
    InvalidSessionIdException,
    NoSuchWindowException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from urllib3.exceptions import MaxRetryError


class ShellChromeError(Exception):
    """Base class for all errors reported to the operator."""


class NotFound(ShellChromeError):
    """A uid is unknown in the current epoch, no page is selected, or no resolver strategy matched."""

    def __init__(self, message: str, uid: Optional[str] = None):
        super().__init__(message)
        self.uid = uid


class StaleReference(NotFound):
    """A resolved element became invalid between resolution and use."""


class WaitTimeout(ShellChromeError):
    """A bounded wait exceeded its deadline."""

    def __init__(self, message: str, timeout_ms: int = 0):
        super().__init__(message)
        self.timeout_ms = timeout_ms


class DriverFailure(ShellChromeError):
    """
    The browser driver rejected an operation.

    ``fatal`` is set when the session itself is gone (crashed target,
    closed transport); such a session is not retried.
    """

    def __init__(self, message: str, fatal: bool = False):
        super().__init__(message)
        self.fatal = fatal


# The browser session itself is gone; strategy-level recovery must let these through
SESSION_LOST_ERRORS = (InvalidSessionIdException, ConnectionError, MaxRetryError)


def _describe(error: Exception) -> str:
    message = getattr(error, "msg", None) or str(error)
    return message.strip().splitlines()[0] if message.strip() else error.__class__.__name__


@contextmanager
def translate_driver_errors(action: str) -> Iterator[None]:
    """
    Re-raise Selenium and transport exceptions as ShellChromeError subclasses.

    Args:
        action: Short description used as the message prefix
    """
    try:
        yield
    except ShellChromeError:
        raise
    except InvalidSessionIdException as e:
        raise DriverFailure(f"{action}: browser session is gone ({_describe(e)})", fatal=True) from e
    except NoSuchWindowException as e:
        raise NotFound(f"{action}: page is no longer open ({_describe(e)})") from e
    except StaleElementReferenceException as e:
        raise StaleReference(f"{action}: element went stale ({_describe(e)})") from e
    except TimeoutException as e:
        raise WaitTimeout(f"{action}: timed out ({_describe(e)})") from e
    except WebDriverException as e:
        raise DriverFailure(f"{action}: {_describe(e)}") from e
    except (ConnectionError, MaxRetryError) as e:
        raise DriverFailure(f"{action}: lost connection to the browser ({e})", fatal=True) from e
