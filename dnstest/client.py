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


"""
DNS client driving `dig` inside a sandbox container.

The textual output of `dig` is converted into a `dns.message.Message`, so that
responses obtained through a resolver can be examined with the same helpers
(`dnstest.check`, `dnstest.nsec3`) as messages received directly.
"""

from dataclasses import dataclass, field, replace
import re
from typing import List, Optional

import dns.flags
import dns.message
import dns.rcode
import dns.rdatatype
import dns.rrset

from .container import Container, Image
from .network import Network
from .vars import ALL

HEADER_RE = re.compile(
    r"^;; ->>HEADER<<- opcode: (?P<opcode>\w+), status: (?P<status>\w+), id: (?P<id>\d+)"
)
FLAGS_RE = re.compile(r"^;; flags:(?P<flags>[^;]*);")
EDNS_RE = re.compile(
    r"^; EDNS: version: (?P<version>\d+), flags:(?P<flags>[^;]*); udp: (?P<udp>\d+)"
)
SECTION_RE = re.compile(r"^;; (?P<section>QUESTION|ANSWER|AUTHORITY|ADDITIONAL) SECTION:")


@dataclass(frozen=True)
class DigSettings:
    """
    Options of a `dig` invocation; the builder methods return a new value:

    >>> DigSettings().recurse().authentic_data().args()
    ['+recurse', '+nodnssec', '+adflag', '+nocdflag', '+timeout=5', '+tries=1']
    """

    rdflag: bool = False
    do: bool = False
    adflag: bool = False
    cdflag: bool = False
    timeout_seconds: Optional[int] = None

    def recurse(self) -> "DigSettings":
        return replace(self, rdflag=True)

    def dnssec(self) -> "DigSettings":
        return replace(self, do=True)

    def authentic_data(self) -> "DigSettings":
        return replace(self, adflag=True)

    def checking_disabled(self) -> "DigSettings":
        return replace(self, cdflag=True)

    def timeout(self, seconds: int) -> "DigSettings":
        if seconds < 1:
            raise ValueError(f"dig timeout must be at least one second, got {seconds}")
        return replace(self, timeout_seconds=seconds)

    def args(self) -> List[str]:
        def toggle(name: str, enabled: bool) -> str:
            return f"+{name}" if enabled else f"+no{name}"

        timeout = self.timeout_seconds
        if timeout is None:
            timeout = int(ALL["DNSTEST_DIG_TIMEOUT"])
        return [
            toggle("recurse", self.rdflag),
            toggle("dnssec", self.do),
            toggle("adflag", self.adflag),
            toggle("cdflag", self.cdflag),
            f"+timeout={timeout}",
            "+tries=1",
        ]


def parse_dig_output(text: str) -> dns.message.Message:
    """
    Convert the output of `dig` into a message.

    The header, the OPT pseudosection and the four sections are rewritten
    into the text format understood by `dns.message.from_text()`; everything
    else (statistics, warnings) is skipped.
    """
    header: List[str] = []
    body: List[str] = []
    section = None
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        match = HEADER_RE.match(line)
        if match:
            header += [
                f"id {match.group('id')}",
                f"opcode {match.group('opcode')}",
                f"rcode {match.group('status')}",
            ]
            continue
        match = FLAGS_RE.match(line)
        if match:
            header.append(f"flags {match.group('flags').strip().upper()}")
            continue
        match = EDNS_RE.match(line)
        if match:
            header.append(f"edns {match.group('version')}")
            eflags = match.group("flags").strip().upper()
            if eflags:
                header.append(f"eflags {eflags}")
            header.append(f"payload {match.group('udp')}")
            continue
        match = SECTION_RE.match(line)
        if match:
            section = match.group("section")
            body.append(f";{section}")
            continue
        if section == "QUESTION" and line.startswith(";"):
            body.append(line[1:])
            continue
        if line.startswith(";"):
            continue
        if section is not None:
            body.append(line)
    if not header:
        raise ValueError(f"no DNS message header found in dig output:\n{text}")
    return dns.message.from_text("\n".join(header + body) + "\n")


@dataclass(frozen=True)
class DigFlags:
    qr: bool = False
    aa: bool = False
    tc: bool = False
    rd: bool = False
    ra: bool = False
    ad: bool = False
    cd: bool = False

    @classmethod
    def from_message(cls, message: dns.message.Message) -> "DigFlags":
        flags = message.flags
        return cls(
            qr=bool(flags & dns.flags.QR),
            aa=bool(flags & dns.flags.AA),
            tc=bool(flags & dns.flags.TC),
            rd=bool(flags & dns.flags.RD),
            ra=bool(flags & dns.flags.RA),
            ad=bool(flags & dns.flags.AD),
            cd=bool(flags & dns.flags.CD),
        )


@dataclass
class DigOutput:
    text: str
    message: dns.message.Message = field(init=False)

    def __post_init__(self) -> None:
        self.message = parse_dig_output(self.text)

    @property
    def status(self) -> dns.rcode.Rcode:
        return self.message.rcode()

    @property
    def flags(self) -> DigFlags:
        return DigFlags.from_message(self.message)

    @property
    def answer(self) -> List[dns.rrset.RRset]:
        return self.message.answer

    @property
    def authority(self) -> List[dns.rrset.RRset]:
        return self.message.authority

    @property
    def additional(self) -> List[dns.rrset.RRset]:
        return self.message.additional

    def __str__(self) -> str:
        return self.text


class Client:
    """Container with `dig`, attached to `network`."""

    def __init__(self, network: Network) -> None:
        self.container = Container(Image.CLIENT, network)

    @property
    def ipv4_addr(self) -> str:
        return self.container.ipv4_addr

    def dig(
        self,
        settings: DigSettings,
        server: str,
        record_type,
        fqdn,
    ) -> DigOutput:
        rdtype = dns.rdatatype.RdataType.make(record_type)
        args = ["dig", f"@{server}"] + settings.args()
        args += [str(fqdn), dns.rdatatype.to_text(rdtype)]
        timeout = (settings.timeout_seconds or int(ALL["DNSTEST_DIG_TIMEOUT"])) + 30
        return DigOutput(self.container.exec(args, timeout=timeout))

    def close(self) -> None:
        self.container.close()

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
