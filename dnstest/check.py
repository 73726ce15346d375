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


from typing import Optional

import dns.flags
import dns.message
import dns.rcode
import dns.rdataclass
import dns.rdatatype
import dns.rrset

import dnstest.log


def rcode(message: dns.message.Message, expected_rcode) -> None:
    assert message.rcode() == expected_rcode, str(message)


def noerror(message: dns.message.Message) -> None:
    rcode(message, dns.rcode.NOERROR)


def nxdomain(message: dns.message.Message) -> None:
    rcode(message, dns.rcode.NXDOMAIN)


def servfail(message: dns.message.Message) -> None:
    rcode(message, dns.rcode.SERVFAIL)


def adflag(message: dns.message.Message) -> None:
    assert (message.flags & dns.flags.AD) != 0, str(message)


def noadflag(message: dns.message.Message) -> None:
    assert (message.flags & dns.flags.AD) == 0, str(message)


def rdflag(message: dns.message.Message) -> None:
    assert (message.flags & dns.flags.RD) != 0, str(message)


def raflag(message: dns.message.Message) -> None:
    assert (message.flags & dns.flags.RA) != 0, str(message)


def doflag(message: dns.message.Message) -> None:
    assert (message.ednsflags & dns.flags.DO) != 0, str(message)


def empty_answer(message: dns.message.Message) -> None:
    assert not message.answer, str(message)


def records_count(
    message: dns.message.Message, section: str, rdtype, expected: int
) -> None:
    rdtype = dns.rdatatype.RdataType.make(rdtype)
    count = sum(
        len(rrset)
        for rrset in getattr(message, section.lower())
        if rrset.rdclass == dns.rdataclass.IN and rrset.rdtype == rdtype
    )
    assert count == expected, (
        f"expected {expected} {dns.rdatatype.to_text(rdtype)} records in {section}, "
        f"found {count}\n{message}"
    )


def rrsets_equal(
    first_rrset: dns.rrset.RRset,
    second_rrset: dns.rrset.RRset,
    compare_ttl: Optional[bool] = False,
) -> None:
    """Compare two RRset (optionally including TTL)"""

    def compare_rrs(rr1, rrset):
        rr2 = next((other_rr for other_rr in rrset if rr1 == other_rr), None)
        assert rr2 is not None, f"No corresponding RR found for: {rr1}"

    dnstest.log.debug(f"rrsets_equal() first RRset:\n{first_rrset}")
    dnstest.log.debug(f"rrsets_equal() second RRset:\n{second_rrset}")
    assert first_rrset.name == second_rrset.name
    if compare_ttl:
        assert first_rrset.ttl == second_rrset.ttl
    for rr in first_rrset:
        compare_rrs(rr, second_rrset)
    for rr in second_rrset:
        compare_rrs(rr, first_rrset)
