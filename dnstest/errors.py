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

import subprocess
from typing import Sequence


class DnsTestError(Exception):
    """Base class for errors raised by the harness itself."""


class NetworkAllocationError(DnsTestError):
    """No free subnet could be found or materialized within the retry bound."""


class CommandError(DnsTestError):
    """
    An external tool (docker, dig, dnssec-signzone, ...) exited with a non-zero
    status.  The full output is kept so that environment issues can be
    diagnosed from the test report alone.
    """

    def __init__(
        self, args: Sequence[str], returncode: int, stdout: str, stderr: str
    ) -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"command `{' '.join(self.command)}` exited with status {returncode}\n"
            f"--- STDOUT ---\n{stdout}\n--- STDERR ---\n{stderr}"
        )

    @classmethod
    def from_called_process_error(
        cls, exc: subprocess.CalledProcessError
    ) -> "CommandError":
        def decode(data) -> str:
            if data is None:
                return ""
            if isinstance(data, bytes):
                return data.decode("utf-8", errors="replace")
            return data

        args = exc.cmd if isinstance(exc.cmd, (list, tuple)) else [str(exc.cmd)]
        return cls(
            [str(arg) for arg in args],
            exc.returncode,
            decode(exc.stdout),
            decode(exc.stderr),
        )


class ServerStartError(DnsTestError):
    """A sandboxed server did not come up; the message carries its log."""

    def __init__(self, what: str, log: str) -> None:
        self.log = log
        super().__init__(f"{what} failed to start\n--- LOG ---\n{log}")
