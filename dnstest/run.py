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
import subprocess
from typing import List, Optional

from dnstest.errors import CommandError
import dnstest.log


def cmd(
    args: List[str],
    cwd=None,
    timeout=60,
    stdout=subprocess.PIPE,
    stderr=subprocess.PIPE,
    log_stdout=True,
    log_stderr=True,
    input_text: Optional[bytes] = None,
    raise_on_exception=True,
    env: Optional[dict] = None,
):
    """
    Execute a command with given args as subprocess.

    A non-zero exit status is turned into `CommandError` carrying the whole
    stdout and stderr of the command, unless `raise_on_exception` is False in
    which case the `subprocess.CalledProcessError` is returned.
    """
    dnstest.log.debug(f"dnstest.run.cmd(): {' '.join(args)}")

    def print_debug_logs(procdata):
        if procdata:
            if log_stdout and procdata.stdout:
                dnstest.log.debug(
                    f"dnstest.run.cmd(): (stdout)\n{procdata.stdout.decode('utf-8', errors='replace')}"
                )
            if log_stderr and procdata.stderr:
                dnstest.log.debug(
                    f"dnstest.run.cmd(): (stderr)\n{procdata.stderr.decode('utf-8', errors='replace')}"
                )

    if env is None:
        env = dict(os.environ)

    try:
        proc = subprocess.run(
            args,
            stdout=stdout,
            stderr=stderr,
            input=input_text,
            check=True,
            cwd=cwd,
            timeout=timeout,
            env=env,
        )
        print_debug_logs(proc)
        return proc
    except subprocess.CalledProcessError as exc:
        print_debug_logs(exc)
        dnstest.log.debug(f"dnstest.run.cmd(): (return code) {exc.returncode}")
        if raise_on_exception:
            raise CommandError.from_called_process_error(exc) from exc
        return exc


def output(args: List[str], **kwargs) -> str:
    """Run the command and return its decoded stdout."""
    return cmd(args, **kwargs).stdout.decode("utf-8")

