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
Helpers for building resource record sets added to test zones.
"""

from typing import Union

from dns.name import Name
import dns.rdataclass
import dns.rdatatype
import dns.rrset

from .name import fqdn

DEFAULT_TTL = 86400

NameLike = Union[str, Name]


def make(owner: NameLike, rdtype: str, rdata: str, ttl: int = DEFAULT_TTL):
    return dns.rrset.from_text(fqdn(owner), ttl, dns.rdataclass.IN, rdtype, rdata)


def a(owner: NameLike, ipv4_addr: str, ttl: int = DEFAULT_TTL) -> dns.rrset.RRset:
    return make(owner, "A", str(ipv4_addr), ttl)


def ns(zone: NameLike, nameserver: NameLike, ttl: int = DEFAULT_TTL):
    return make(zone, "NS", fqdn(nameserver).to_text(), ttl)


def mx(owner: NameLike, preference: int, exchange: NameLike, ttl: int = DEFAULT_TTL):
    return make(owner, "MX", f"{preference} {fqdn(exchange)}", ttl)


def txt(owner: NameLike, text: str, ttl: int = DEFAULT_TTL) -> dns.rrset.RRset:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return make(owner, "TXT", f'"{escaped}"', ttl)


def soa(
    zone: NameLike,
    mname: NameLike,
    rname: NameLike,
    serial: int = 2024010101,
    refresh: int = 1800,
    retry: int = 900,
    expire: int = 604800,
    minimum: int = 86400,
    ttl: int = DEFAULT_TTL,
) -> dns.rrset.RRset:
    rdata = f"{fqdn(mname)} {fqdn(rname)} {serial} {refresh} {retry} {expire} {minimum}"
    return make(zone, "SOA", rdata, ttl)


def from_text(line: str) -> dns.rrset.RRset:
    """
    Parse a single record in presentation format, i.e. a zone file line:
    owner, TTL, class, type, rdata.

    >>> from_text("example.com. 3600 IN A 192.0.2.1").to_text()
    'example.com. 3600 IN A 192.0.2.1'
    """
    fields = line.split(None, 4)
    if len(fields) != 5:
        raise ValueError(f"expected 'owner ttl class type rdata', got {line!r}")
    owner, ttl, rdclass, rdtype, rdata = fields
    return dns.rrset.from_text(
        fqdn(owner),
        int(ttl),
        dns.rdataclass.from_text(rdclass),
        dns.rdatatype.from_text(rdtype),
        rdata.strip(),
    )
