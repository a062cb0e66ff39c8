import pytest

from selenium.common.exceptions import (
    InvalidSessionIdException,
    NoSuchWindowException,
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)

from shellchrome.core.errors import (
    DriverFailure,
    NotFound,
    StaleReference,
    WaitTimeout,
    translate_driver_errors,
)


@pytest.mark.parametrize("raised,expected", [
    (NoSuchWindowException("closed"), NotFound),
    (StaleElementReferenceException("stale"), StaleReference),
    (TimeoutException("slow"), WaitTimeout),
    (WebDriverException("boom"), DriverFailure),
])
def test_driver_exceptions_are_translated(raised, expected):
    with pytest.raises(expected):
        with translate_driver_errors("Act"):
            raise raised


def test_lost_session_is_fatal():
    with pytest.raises(DriverFailure) as excinfo:
        with translate_driver_errors("Click"):
            raise InvalidSessionIdException("invalid session id")

    assert excinfo.value.fatal


def test_connection_loss_is_fatal():
    with pytest.raises(DriverFailure) as excinfo:
        with translate_driver_errors("Click"):
            raise ConnectionRefusedError("refused")

    assert excinfo.value.fatal


def test_own_errors_pass_through():
    error = NotFound("missing", uid="uid_3")

    with pytest.raises(NotFound) as excinfo:
        with translate_driver_errors("Click"):
            raise error

    assert excinfo.value is error
    assert excinfo.value.uid == "uid_3"


def test_stale_reference_is_a_not_found():
    assert issubclass(StaleReference, NotFound)
