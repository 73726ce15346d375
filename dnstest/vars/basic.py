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

# Implementation of the resolver under test ("unbound" or "bind").
SUBJECTS = ("unbound", "bind")

# Implementation of the authoritative servers of the hierarchy.
PEERS = ("bind",)

# Marker substring of every docker object created by the harness.
MARKER = "dnstest"

BASIC_VARS = {
    "DOCKER": os.getenv("DOCKER", "docker"),
    "DNSTEST_SUBJECT": os.getenv("DNSTEST_SUBJECT", "unbound"),
    "DNSTEST_PEER": os.getenv("DNSTEST_PEER", "bind"),
    "DNSTEST_IMAGE_PREFIX": os.getenv("DNSTEST_IMAGE_PREFIX", MARKER),
    "DNSTEST_BASE_IMAGE": os.getenv("DNSTEST_BASE_IMAGE", "debian:bookworm-slim"),
    "DNSTEST_START_TIMEOUT": os.getenv("DNSTEST_START_TIMEOUT", "10"),
    "DNSTEST_DIG_TIMEOUT": os.getenv("DNSTEST_DIG_TIMEOUT", "5"),
}


def check_basic_vars():
    subject = BASIC_VARS["DNSTEST_SUBJECT"]
    if subject not in SUBJECTS:
        raise ValueError(
            f"unsupported DNSTEST_SUBJECT {subject!r}, expected one of {SUBJECTS}"
        )
    peer = BASIC_VARS["DNSTEST_PEER"]
    if peer not in PEERS:
        raise ValueError(
            f"unsupported DNSTEST_PEER {peer!r}, expected one of {PEERS}"
        )
