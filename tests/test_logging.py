from __future__ import annotations

import logging

from telemetry_charts.logging import NOISY_LOGGERS, configure_logging


def test_configure_logging_quiets_third_party_loggers() -> None:
    configure_logging("debug")

    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level >= logging.WARNING
