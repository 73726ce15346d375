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

import re
from typing import FrozenSet, Tuple, Union

from dns.name import Name, NameRelation
import dns.exception
import dns.name
import dns.rdatatype
import dns.zone

LABEL_RE = re.compile(r"^[A-Za-z0-9_-]+$")

ROOT = dns.name.root
COM = dns.name.from_text("com.")

# Zone hosting the A records of all name servers of a hierarchy.
NAMESERVERS = dns.name.from_text("nameservers.com.")

NAMESERVER_HOST_RE = re.compile(r"^primary(?P<index>[0-9]+)\.nameservers\.com\.$")


def fqdn(text: Union[str, Name]) -> Name:
    """
    Parse a fully qualified domain name.

    Malformed names are a programming error in the test and raise ValueError.

    >>> fqdn("example.com.")
    <DNS name example.com.>
    >>> fqdn("*.example.com.")
    <DNS name *.example.com.>
    >>> fqdn("example.com")
    Traceback (most recent call last):
      ...
    ValueError: not a fully qualified domain name (missing trailing dot): 'example.com'
    """
    if isinstance(text, Name):
        if not text.is_absolute():
            raise ValueError(f"not a fully qualified domain name: {text}")
        return text
    if not text.endswith("."):
        raise ValueError(
            f"not a fully qualified domain name (missing trailing dot): {text!r}"
        )
    try:
        name = dns.name.from_text(text)
    except dns.exception.DNSException as exc:
        raise ValueError(f"malformed domain name {text!r}: {exc}") from exc
    for i, label in enumerate(name.labels[:-1]):
        if label == b"*" and i == 0:
            continue
        if not LABEL_RE.match(label.decode("ascii", errors="replace")):
            raise ValueError(f"malformed label {label!r} in domain name {text!r}")
    return name


def nameserver_fqdn(index: int) -> Name:
    return dns.name.from_text(f"primary{index}.nameservers.com.")


def nameserver_index(name: Name) -> int:
    """
    Return N for host name `primaryN.nameservers.com.`; any other name is
    rejected loudly, because silently skipping it would leave the reference
    data of a test incomplete.
    """
    match = NAMESERVER_HOST_RE.match(name.to_text().lower())
    if match is None:
        raise ValueError(f"unrecognized name server host name {name}")
    return int(match.group("index"))


def ancestors(name: Name) -> Tuple[Name, ...]:
    """
    Return all proper ancestors of `name`, closest first, ending with the root.

    >>> [str(n) for n in ancestors(fqdn("a.example.com."))]
    ['example.com.', 'com.', '.']
    """
    result = []
    while name != ROOT:
        name = name.parent()
        result.append(name)
    return tuple(result)


class ZoneAnalyzer:
    """
    Find out which names of a zone exist from the point of view of NSEC3:

    - delegations - non-apex names with NS RR
    - occluded - names below a delegation
    - reachable - names with data which are not occluded
    - ents - empty non-terminals between reachable names and the apex
    - all_existing_names - everything which gets its own NSEC3 record

    Quadratic complexity, use only on small test zones.
    """

    def __init__(self, zone: dns.zone.Zone):
        self.zone = zone
        assert self.zone.origin is not None
        self.origin: Name = self.zone.origin
        self.delegations = self.get_names_with_type(dns.rdatatype.NS) - {self.origin}

        occluded = set()
        for name in self.zone:
            for cut in self.delegations:
                relation, _, _ = name.fullcompare(cut)
                if relation == NameRelation.SUBDOMAIN:
                    occluded.add(name)
        self.occluded: FrozenSet[Name] = frozenset(occluded)
        self.reachable: FrozenSet[Name] = frozenset(
            name
            for name in self.zone
            if name not in occluded and name not in self.delegations
        )
        self.ents = self._generate_ents()
        self.all_existing_names: FrozenSet[Name] = self.reachable.union(
            self.ents
        ).union(self.delegations)

    def get_names_with_type(self, rdtype) -> FrozenSet[Name]:
        return frozenset(
            name for name in self.zone if self.zone.get_rdataset(name, rdtype)
        )

    def _generate_ents(self) -> FrozenSet[Name]:
        names = self.reachable.union(self.delegations)
        ents = set()
        for name in names:
            super_name = name.parent()
            while len(super_name) > len(self.origin):
                if super_name not in names:
                    ents.add(super_name)
                super_name = super_name.parent()
        return frozenset(ents)

    def closest_encloser(self, qname: Name) -> Tuple[Name, Name]:
        """
        Get (closest encloser, next closer name) for a name which does not
        exist in the zone.
        """
        ce = None
        for zname in self.all_existing_names:
            relation, _, common_labels = qname.fullcompare(zname)
            if relation == NameRelation.SUBDOMAIN:
                if ce is None or common_labels > len(ce):
                    ce = zname
        if ce is None:
            raise ValueError(f"{qname} is not below zone {self.origin}")
        _, nce = qname.split(len(ce) + 1)
        return ce, nce

    def source_of_synthesis(self, qname: Name) -> Name:
        """Wildcard which could have matched `qname`, RFC 4592 section 3.3.1."""
        ce, _ = self.closest_encloser(qname)
        return Name("*") + ce
