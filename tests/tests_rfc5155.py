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
Authenticated denial of existence with NSEC3, RFC 5155, checked end to end
against the resolver under test.  Needs docker.
"""

import pytest

import dns.name
import dns.rcode
import dns.rdatatype

import dnstest
import dnstest.mark
from dnstest.client import Client, DigSettings
from dnstest.dnssec import SignSettings
from dnstest.graph import Graph
from dnstest.name import NAMESERVERS, fqdn
from dnstest.nameserver import NameServer
from dnstest.nsec3 import HashedNameTable, NSEC3Checker, NSEC3Fixture
from dnstest.resolver import Resolver
from dnstest import record

pytestmark = [dnstest.mark.with_docker]

FIXTURE = NSEC3Fixture(algorithm=1, salt="-", iterations=1)
SIGN = SignSettings(nsec3_salt="-", nsec3_iterations=1)
SETTINGS = DigSettings().recurse().dnssec().authentic_data()


def expected_owners(table, fixture, qname, closest_encloser):
    """Owner hashes of the records an NXDOMAIN response has to carry."""
    ce = fqdn(closest_encloser)
    _, next_closer = fqdn(qname).split(len(ce) + 1)
    return {
        fixture.hash(ce),
        table.find_prev(fixture.hash(next_closer)),
        table.find_prev(fixture.hash(dns.name.Name("*") + ce)),
    }


def query(graph, subject, network, rdtype, qname):
    with Resolver.start(
        subject, [graph.root], graph.trust_anchor, network
    ) as resolver, Client(network) as client:
        output = client.dig(SETTINGS, resolver.ipv4_addr, rdtype, qname)
        dnstest.log.debug(f"resolver log:\n{resolver.terminate()}")
    dnstest.log.debug(f"dig output:\n{output}")
    return output


def test_nxdomain_proof_example_com(subject, peer, network):
    leaf = NameServer(peer, "example.com.", network)
    leaf.add(record.a("a.example.com.", "1.2.3.4"))
    leaf.add(record.a("c.example.com.", "1.2.3.5"))
    leaf.add(record.a("x.example.com.", "1.2.3.6"))
    table = HashedNameTable.from_zone(leaf.zonefile, FIXTURE)

    with Graph.build(leaf, sign=SIGN) as graph:
        signed = graph.nameserver("example.com.").zonefile
        assert HashedNameTable.from_signed_zone(signed) == table

        output = query(graph, subject, network, "A", "b.example.com.")

    assert output.status == dns.rcode.NXDOMAIN
    dnstest.check.nxdomain(output.message)
    checker = NSEC3Checker(output.message, table, FIXTURE)
    proof = checker.check_nxdomain("b.example.com.", "example.com.")
    checker.check_extraneous_rrs()
    assert {rec.owner_hash for rec in proof.records} == expected_owners(
        table, FIXTURE, "b.example.com.", "example.com."
    )


def test_nxdomain_proof_with_infrastructure_hosts(subject, peer, network):
    leaf = NameServer(peer, NAMESERVERS, network)
    leaf.add(record.a("alice.nameservers.com.", "1.2.3.4"))
    leaf.add(record.a("charlie.nameservers.com.", "1.2.3.5"))

    with Graph.build(leaf, sign=SIGN) as graph:
        static = [
            FIXTURE.hash(name)
            for name in [
                "nameservers.com.",
                "alice.nameservers.com.",
                "charlie.nameservers.com.",
            ]
        ]
        table = HashedNameTable.from_static_and_dynamic(static, graph.hosts, FIXTURE)
        signed = graph.nameserver(NAMESERVERS).zonefile
        assert HashedNameTable.from_signed_zone(signed) == table

        output = query(graph, subject, network, "MX", "bob.nameservers.com.")

    assert output.status == dns.rcode.NXDOMAIN
    nsec3 = [rrset for rrset in output.authority if rrset.rdtype == dns.rdatatype.NSEC3]
    expected = expected_owners(
        table, FIXTURE, "bob.nameservers.com.", "nameservers.com."
    )
    assert len(nsec3) == len(expected)

    checker = NSEC3Checker(output.message, table, FIXTURE)
    for rec in checker.records:
        assert rec.hash_algorithm == 1
        assert rec.salt == "-"
        assert rec.iterations == 1
    proof = checker.check_nxdomain("bob.nameservers.com.", "nameservers.com.")
    checker.check_extraneous_rrs()
    assert {rec.owner_hash for rec in proof.records} == expected


def test_validated_nxdomain_has_ad_flag(subject, peer, network):
    leaf = NameServer(peer, "example.com.", network)
    leaf.add(record.a("a.example.com.", "1.2.3.4"))

    with Graph.build(leaf, sign=SIGN) as graph:
        output = query(graph, subject, network, "A", "b.example.com.")

    dnstest.check.nxdomain(output.message)
    dnstest.check.adflag(output.message)
    dnstest.check.raflag(output.message)


def test_unsigned_hierarchy_has_no_nsec3(subject, peer, network):
    leaf = NameServer(peer, "example.com.", network)
    leaf.add(record.a("a.example.com.", "1.2.3.4"))

    with Graph.build(leaf) as graph:
        assert graph.trust_anchor.is_empty()
        output = query(graph, subject, network, "A", "b.example.com.")

    dnstest.check.nxdomain(output.message)
    dnstest.check.noadflag(output.message)
    dnstest.check.records_count(output.message, "authority", "NSEC3", 0)


@pytest.mark.parametrize("qname", ["a.example.com.", "x.example.com."])
def test_existing_name_resolves(subject, peer, network, qname):
    leaf = NameServer(peer, "example.com.", network)
    leaf.add(record.a("a.example.com.", "1.2.3.4"))
    leaf.add(record.a("x.example.com.", "1.2.3.6"))

    with Graph.build(leaf, sign=SIGN) as graph:
        output = query(graph, subject, network, "A", qname)

    dnstest.check.noerror(output.message)
    dnstest.check.adflag(output.message)
    dnstest.check.records_count(output.message, "answer", "A", 1)
