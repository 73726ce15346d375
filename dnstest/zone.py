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

from typing import Iterator, List, Optional

from dns.name import Name
import dns.name
import dns.rdatatype
import dns.rrset
import dns.zone

from . import record
from .name import NAMESERVERS, fqdn


class ZoneFile:
    """
    Records of a single zone, serialized in the standard presentation format
    for the authoritative server.

    The records are kept in a `dns.zone.Zone`, so the content can also be
    inspected with `dnstest.name.ZoneAnalyzer`.
    """

    def __init__(self, origin: Name, zone: Optional[dns.zone.Zone] = None):
        self.origin = fqdn(origin)
        if zone is None:
            zone = dns.zone.Zone(self.origin, relativize=False)
        self.zone = zone

    @classmethod
    def new(cls, origin: Name, nameserver: Name, ttl: int = record.DEFAULT_TTL):
        """Create a zone with SOA and the apex NS record."""
        zonefile = cls(origin)
        zonefile.add(
            record.soa(
                zonefile.origin,
                nameserver,
                dns.name.from_text("admin", NAMESERVERS),
                ttl=ttl,
            )
        )
        zonefile.add(record.ns(zonefile.origin, nameserver, ttl=ttl))
        return zonefile

    @classmethod
    def from_text(cls, text: str, origin: Name) -> "ZoneFile":
        zone = dns.zone.from_text(
            text, origin, relativize=False, check_origin=False
        )
        return cls(origin, zone)

    def add(self, rrset: dns.rrset.RRset) -> None:
        relation, _, _ = rrset.name.fullcompare(self.origin)
        if relation not in (
            dns.name.NameRelation.EQUAL,
            dns.name.NameRelation.SUBDOMAIN,
        ):
            raise ValueError(f"{rrset.name} does not belong to zone {self.origin}")
        rdataset = self.zone.find_rdataset(
            rrset.name, rrset.rdtype, rrset.covers, create=True
        )
        rdataset.update_ttl(rrset.ttl)
        for rdata in rrset:
            rdataset.add(rdata, rrset.ttl)

    def rrsets(self) -> Iterator[dns.rrset.RRset]:
        for name, node in sorted(self.zone.nodes.items()):
            for rdataset in node:
                rrset = dns.rrset.RRset(
                    name, rdataset.rdclass, rdataset.rdtype, rdataset.covers
                )
                rrset.update(rdataset)
                yield rrset

    def get(self, name: Name, rdtype) -> Optional[dns.rrset.RRset]:
        return self.zone.get_rrset(name, rdtype)

    def nsec3_rrsets(self) -> List[dns.rrset.RRset]:
        return [
            rrset for rrset in self.rrsets() if rrset.rdtype == dns.rdatatype.NSEC3
        ]

    def to_text(self) -> str:
        return self.zone.to_text(sorted=True, relativize=False, nl="\n")

    def __str__(self) -> str:
        return self.to_text()
