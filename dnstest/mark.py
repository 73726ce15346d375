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
import shutil

import pytest

from dnstest.vars import ALL
import dnstest.run


def docker_available() -> bool:
    docker = shutil.which(ALL["DOCKER"])
    if docker is None:
        return False
    proc = dnstest.run.cmd(
        [docker, "info"], raise_on_exception=False, log_stdout=False, timeout=30
    )
    return proc.returncode == 0


with_docker = pytest.mark.skipif(
    not os.environ.get("DNSTEST_ENABLE_DOCKER_TESTS") or not docker_available(),
    reason="DNSTEST_ENABLE_DOCKER_TESTS not set or docker not available",
)
