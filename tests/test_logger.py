"""
Tests for the storefront logging setup.
"""
import io

import pytest

from logger import configure_logging, get_logger


@pytest.fixture
def log_stream():
    stream = io.StringIO()
    configure_logging("debug", stream=stream)
    yield stream
    configure_logging()


def test_module_loggers_share_namespace():
    assert get_logger("cart").name == "parisa.cart"
    assert get_logger().name == "parisa"


def test_reconfigure_changes_level_and_stream(log_stream):
    get_logger("search").debug("ranking 3 products")
    line = log_stream.getvalue()
    assert "DEBUG" in line
    assert "parisa.search: ranking 3 products" in line


def test_reconfigure_keeps_single_handler(log_stream):
    configure_logging("warning", stream=log_stream)
    get_logger("cart").info("hidden")
    get_logger("cart").warning("shown")
    assert log_stream.getvalue().count("shown") == 1
    assert "hidden" not in log_stream.getvalue()
    assert len(get_logger().handlers) == 1
