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

import os
import tempfile

from .. import log

STRATEGIES = ("scan", "random")

NETWORK_VARS = {
    # "scan" walks a fixed ladder of private /24s and skips the ones in use on
    # the host, "random" picks from a fixed partition and retries on failure
    "DNSTEST_NETWORK_STRATEGY": os.getenv("DNSTEST_NETWORK_STRATEGY", "scan"),
    "DNSTEST_NETWORK_ATTEMPTS": os.getenv("DNSTEST_NETWORK_ATTEMPTS", "3"),
    "DNSTEST_NETWORK_LOCK": os.getenv(
        "DNSTEST_NETWORK_LOCK",
        os.path.join(tempfile.gettempdir(), "dnstest-network.lock"),
    ),
}


def set_strategy(strategy: str):
    if strategy not in STRATEGIES:
        raise ValueError(f"unknown network allocation strategy {strategy!r}")
    log.debug(f"setting network allocation strategy {strategy}")
    NETWORK_VARS["DNSTEST_NETWORK_STRATEGY"] = strategy
    os.environ["DNSTEST_NETWORK_STRATEGY"] = strategy


def attempts() -> int:
    value = int(NETWORK_VARS["DNSTEST_NETWORK_ATTEMPTS"])
    if value < 1:
        raise ValueError("DNSTEST_NETWORK_ATTEMPTS must be at least 1")
    return value
