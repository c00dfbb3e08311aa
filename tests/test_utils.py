"""
Unit tests for the utils module.

Tests logging setup and the port and option formatting helpers.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import logging
import struct
from unittest.mock import Mock

import pytest

from teamnl.cache import Option, OptionType, Port
from teamnl.utils import format_option, format_port, setup_logging


class TestFormatting:
    """Test one-line renderings of ports and options."""

    def test_format_port_up(self):
        """Test formatting of an up, full duplex port."""
        port = Port(12, speed=1000, duplex=1, linkup=True)

        assert format_port(port) == "ifindex 12: up, 1000Mbit, full duplex"

    def test_format_port_changed_down(self):
        """Test formatting of a changed port that is down."""
        port = Port(13, changed=True)

        assert format_port(port) == "ifindex 13: down, 0Mbit, half duplex (changed)"

    def test_format_port_unknown_duplex(self):
        """Test formatting of a duplex value without a name."""
        assert "duplex 255" in format_port(Port(14, duplex=255))

    def test_format_option_string(self):
        """Test formatting of a string option."""
        option = Option("mode", OptionType.STRING, b"roundrobin\x00")

        assert format_option(option) == 'mode "roundrobin"'

    def test_format_option_u32_changed(self):
        """Test formatting of a changed u32 option."""
        option = Option("activeport", OptionType.U32, struct.pack("=I", 12), changed=True)

        assert format_option(option) == "activeport 12 (changed)"


@pytest.fixture
def clean_loggers():
    package_logger = logging.getLogger("teamnl")
    netlink_logger = logging.getLogger("pyroute2")
    saved = (package_logger.level, package_logger.propagate, package_logger.handlers[:], netlink_logger.level)
    yield package_logger, netlink_logger
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()
    level, propagate, handlers, netlink_level = saved
    package_logger.setLevel(level)
    package_logger.propagate = propagate
    for handler in handlers:
        package_logger.addHandler(handler)
    netlink_logger.setLevel(netlink_level)


class TestLoggingSetup:
    """Test logging setup function."""

    def test_setup_logging_default(self, clean_loggers):
        """Test logging setup with default parameters."""
        package_logger, netlink_logger = clean_loggers

        result = setup_logging()

        assert result is package_logger
        assert package_logger.level == logging.INFO
        assert package_logger.propagate is False
        assert len(package_logger.handlers) == 1
        assert isinstance(package_logger.handlers[0], logging.StreamHandler)
        assert netlink_logger.level == logging.WARNING

    def test_setup_logging_leaves_root_alone(self, clean_loggers):
        """Test that the root logger keeps its handlers and level."""
        root_logger = logging.getLogger()
        handlers, level = root_logger.handlers[:], root_logger.level

        setup_logging(level="debug")

        assert root_logger.handlers == handlers
        assert root_logger.level == level

    def test_setup_logging_with_file(self, clean_loggers, tmp_path):
        """Test logging setup with file handler."""
        package_logger, _ = clean_loggers
        log_file = tmp_path / "teamnl.log"

        setup_logging(log_file=str(log_file))
        logging.getLogger("teamnl.session").info("session ready")
        for handler in package_logger.handlers:
            handler.flush()

        assert len(package_logger.handlers) == 2
        assert "session ready" in log_file.read_text()

    def test_setup_logging_levels(self, clean_loggers):
        """Test that level names are accepted for both loggers."""
        package_logger, netlink_logger = clean_loggers

        setup_logging(level="debug", netlink_level="error")

        assert package_logger.level == logging.DEBUG
        assert netlink_logger.level == logging.ERROR

    def test_setup_logging_replaces_handlers(self, clean_loggers):
        """Test that repeated setup does not stack handlers."""
        package_logger, _ = clean_loggers
        old_handler = Mock(spec=logging.Handler)
        package_logger.addHandler(old_handler)

        setup_logging()
        setup_logging()

        assert old_handler not in package_logger.handlers
        old_handler.close.assert_called_once()
        assert len(package_logger.handlers) == 1
