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

import itertools
import threading

import pytest

_COUNTER = itertools.count(1)
_COUNTER_LOCK = threading.Lock()


def unique_id() -> int:
    """
    Return a process-wide unique, monotonically increasing number.

    This is the only piece of global mutable state in the harness; it is
    used to derive names of networks, containers and name server hosts.
    """
    with _COUNTER_LOCK:
        return next(_COUNTER)


def param(*args, **kwargs):
    if "id" not in kwargs:
        kwargs["id"] = args[0]  # use first argument  as test ID
    return pytest.param(*args, **kwargs)
