# Copyright (C) Internet Systems Consortium, Inc. ("ISC")
#
# SPDX-License-Identifier: MPL-2.0
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0.  If a copy of the MPL was not distributed with this
# file, you can obtain one at https://mozilla.org/MPL/2.0/.
#
# See the COPYRIGHT file distributed with this work for additional
# information regarding copyright ownership.

from pathlib import Path
from typing import Dict, Optional

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)7s:%(name)s  %(message)s"

LOGGERS = {
    "conftest": None,
    "module": None,
    "test": None,
}  # type: Dict[str, Optional[logging.Logger]]


def init_conftest_logger():
    """
    This initializes the conftest logger which is used for pytest setup
    and configuration before tests are executed -- aka any logging in this
    file that is _not_ module-specific.
    """
    LOGGERS["conftest"] = logging.getLogger("conftest")
    LOGGERS["conftest"].setLevel(logging.DEBUG)
    file_handler = logging.FileHandler("pytest.conftest.log.txt")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    LOGGERS["conftest"].addHandler(file_handler)


def avoid_duplicated_logs():
    """
    Remove direct root logger output to file descriptors.
    This default is causing duplicates because all our messages go through
    regular logging as well and are thus displayed twice.
    """
    todel = []
    for handler in logging.root.handlers:
        if handler.__class__ == logging.StreamHandler:
            # Beware: As for pytest 7.2.2, LiveLogging and LogCapture
            # handlers inherit from logging.StreamHandler
            todel.append(handler)
    for handler in todel:
        logging.root.handlers.remove(handler)


def init_module_logger(module_name: str, logdir: Path):
    logger = logging.getLogger(module_name)
    logger.setLevel(logging.DEBUG)
    os.makedirs(logdir, exist_ok=True)
    handler = logging.FileHandler(logdir / "pytest.log.txt", mode="w")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    LOGGERS["module"] = logger


def deinit_module_logger():
    logger = LOGGERS["module"]
    if logger is not None:
        for handler in logger.handlers:
            handler.flush()
            handler.close()
        logger.handlers.clear()
    LOGGERS["module"] = None


def init_test_logger(module_name: str, test_name: str):
    LOGGERS["test"] = logging.getLogger(f"{module_name}.{test_name}")


def deinit_test_logger():
    LOGGERS["test"] = None


def _get_logger() -> logging.Logger:
    for name in ("test", "module", "conftest"):
        logger = LOGGERS[name]
        if logger is not None:
            return logger
    # library use outside of pytest, e.g. `dnstest-purge`
    return logging.getLogger("dnstest")


def debug(msg: str, *args, **kwargs):
    _get_logger().debug(msg, *args, **kwargs)


def info(msg: str, *args, **kwargs):
    _get_logger().info(msg, *args, **kwargs)


def warning(msg: str, *args, **kwargs):
    _get_logger().warning(msg, *args, **kwargs)


def error(msg: str, *args, **kwargs):
    _get_logger().error(msg, *args, **kwargs)


def critical(msg: str, *args, **kwargs):
    _get_logger().critical(msg, *args, **kwargs)
