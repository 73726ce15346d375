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

from typing import Callable, Iterator, List, Match, Optional, Pattern, TypeVar, Union

import re
import time


FlexPattern = Union[str, Pattern]
T = TypeVar("T")
OneOrMore = Union[T, List[T]]


class LogException(Exception):
    pass


class LogTimeout(LogException):
    pass


def _prepare_patterns(strings: OneOrMore[FlexPattern]) -> List[Pattern]:
    """
    Convert a mix of string(s) and/or pattern(s) into a list of patterns.

    Any strings are converted into regular expression patterns that match
    the string verbatim.
    """
    patterns = []
    if not isinstance(strings, list):
        strings = [strings]
    for string in strings:
        if isinstance(string, re.Pattern):
            patterns.append(string)
        elif isinstance(string, str):
            patterns.append(re.compile(re.escape(string)))
        else:
            raise LogException("only string and re.Pattern allowed for matching")
    return patterns


class Log:
    """
    Captured log of a sandboxed process, e.g. the output of a `named` or
    `unbound` instance retrieved when the process is terminated.

    >>> log = Log("ns", "starting BIND\\nrunning\\n")
    >>> "running" in log
    True
    >>> log.expect("starting")
    >>> log.prohibit("assertion failure")
    """

    def __init__(self, origin: str, text: str):
        self.origin = origin
        self.text = text

    @property
    def _lines(self) -> Iterator[str]:
        yield from self.text.splitlines()

    def __contains__(self, substring: str) -> bool:
        """
        Return whether any of the lines in the log contains a given string.
        """
        for line in self._lines:
            if substring in line:
                return True
        return False

    def __str__(self) -> str:
        return self.text

    def expect(self, msg: str):
        """Check the string is present anywhere in the log."""
        if msg in self:
            return
        assert False, f"log message not found in log {self.origin}: {msg}"

    def prohibit(self, msg: str):
        """Check the string is not present in the entire log."""
        if msg in self:
            assert False, f"forbidden message appeared in log {self.origin}: {msg}"

    def search(self, patterns: OneOrMore[FlexPattern]) -> Optional[Match]:
        for line in self._lines:
            for regex in _prepare_patterns(patterns):
                match = regex.search(line)
                if match:
                    return match
        return None


def wait_for_line(
    fetch: Callable[[], Log],
    patterns: OneOrMore[FlexPattern],
    timeout: float = 10.0,
    delay: float = 0.1,
) -> Match:
    """
    Block execution until any line of interest appears in the log returned by
    `fetch`.

    The log is fetched again on every attempt, which makes this usable for
    logs living inside a container.  A `LogTimeout` is raised if none of
    the `patterns` shows up in the allotted time.
    """
    if timeout <= 0.0:
        raise LogException("timeout must be greater than 0")
    regexes = _prepare_patterns(patterns)
    deadline = time.monotonic() + timeout
    log = None
    while time.monotonic() < deadline:
        log = fetch()
        match = log.search(regexes)
        if match:
            return match
        time.sleep(delay)
    origin = log.origin if log is not None else "<unknown>"
    raise LogTimeout(
        f"Timeout reached watching {origin} for "
        f"{' | '.join([regex.pattern for regex in regexes])}"
    )
