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


from dataclasses import replace

import pytest

import dns.message
import dns.name
import dns.rcode
import dns.rdata
import dns.rdataclass
import dns.rdatatype
import dns.rrset

from dnstest.hypothesis.strategies import hash_chain, hashed_name_tables, nsec3_hashes
from dnstest.nsec3 import (
    HashedNameTable,
    NSEC3Checker,
    NSEC3Fixture,
    NSEC3ParameterError,
    NSEC3ProofError,
    NSEC3Record,
    covers,
    nsec3_hash,
)
from dnstest.zone import ZoneFile
from dnstest import record
import dnstest.util

from hypothesis import assume, given

ZONE = dns.name.from_text("example.com.")
FIXTURE = NSEC3Fixture()


# test cases from RFC 5155, Appendix A
@pytest.mark.parametrize(
    "domain,nsec3hash",
    [
        ("*.w.example.", "R53BQ7CC2UVMUBFU5OCMM6PERS9TK9EN"),
        ("a.example.", "35MTHGPGCU1QG68FAB165KLNSNK3DPVL"),
        ("ai.example.", "GJEQE526PLBF1G8MKLP59ENFD789NJGI"),
        ("example.", "0P9MHAVEQVM6T7VBL5LOP2U3T2RP3TOM"),
        ("ns1.example.", "2T7B4G4VSA5SMI47K61MV5BV1A22BOJR"),
        ("w.example.", "K8UDEMVP1J2F7EG6JEBPS17VP3N8I58H"),
        ("x.y.w.example.", "2VPTU5TIMAMQTTGL4LUU9KG21E0AOR3S"),
    ],
)
def test_nsec3_hash_rfc_vectors(domain, nsec3hash):
    assert nsec3_hash(domain, bytes.fromhex("aabbccdd"), 12) == nsec3hash
    fixture = NSEC3Fixture(salt="aabbccdd", iterations=12)
    assert fixture.hash(domain.upper()) == nsec3hash


def test_nsec3_hash_empty_salt():
    assert NSEC3Fixture(iterations=0).hash("com.") == "CK0POJMG874LJREF7EFN8430QVIT8BSM"


@pytest.mark.parametrize("salt", ["-", ""])
def test_fixture_empty_salt(salt):
    assert NSEC3Fixture(salt=salt).salt_bytes == b""


@given(table=hashed_name_tables(), needle=nsec3_hashes())
def test_neighbours_in_range(table, needle):
    prev = table.find_prev(needle)
    nxt = table.find_next(needle)
    assert prev in table
    assert nxt in table
    if table[0] < needle <= table[-1]:
        assert prev < needle
    else:
        assert prev == table[-1]
    if table[0] <= needle < table[-1]:
        assert nxt > needle
    else:
        assert nxt == table[0]


@given(table=hashed_name_tables(min_size=1))
def test_neighbours_wrap(table):
    assert table.find_prev(table[0]) == table[-1]
    assert table.find_next(table[-1]) == table[0]


def test_neighbours_are_case_insensitive():
    table = HashedNameTable(["0aa", "5BB", "vcc"])
    assert table.hashes == ["0AA", "5BB", "VCC"]
    assert table.find_next("5bb") == "VCC"
    assert table.find_prev("5bc") == "5BB"
    assert "vcc" in table


def test_empty_table():
    with pytest.raises(ValueError):
        HashedNameTable([])


@pytest.mark.parametrize(
    "case,owner,nxt,needle,expected",
    [
        dnstest.util.param("standard", "2", "6", "4", True),
        dnstest.util.param("lower-bound", "2", "6", "2", False),
        dnstest.util.param("upper-bound", "2", "6", "6", False),
        dnstest.util.param("outside", "2", "6", "8", False),
        dnstest.util.param("wrap-end", "U", "2", "V", True),
        dnstest.util.param("wrap-start", "U", "2", "0", True),
        dnstest.util.param("wrap-outside", "U", "2", "5", False),
        dnstest.util.param("wrap-lower-case", "u", "2", "v", True),
        dnstest.util.param("single-name", "7", "7", "3", True),
        dnstest.util.param("single-name-owner", "7", "7", "7", False),
    ],
)
def test_covers(case, owner, nxt, needle, expected):  # pylint: disable=unused-argument
    rec = NSEC3Record(owner, ZONE, nxt, 1, 0, "-", 1)
    assert covers(rec, needle) is expected
    assert rec.covers(needle) is expected


@given(table=hashed_name_tables(), needle=nsec3_hashes())
def test_chain_covers_exactly_once(table, needle):
    assume(needle not in table)
    chain = hash_chain(table)
    covering = [rec for rec in chain if covers(rec, needle)]
    assert len(covering) == 1
    assert covering[0].owner_hash == table.find_prev(needle)
    assert covering[0].next_hashed_owner_name == table.find_next(needle)


def test_record_from_rrset():
    rrset = dns.rrset.from_text(
        "0p9mhaveqvm6t7vbl5lop2u3t2rp3tom.example.com.",
        3600,
        "IN",
        "NSEC3",
        "1 0 1 - 35MTHGPGCU1QG68FAB165KLNSNK3DPVL NS SOA RRSIG DNSKEY NSEC3PARAM",
    )
    (rec,) = NSEC3Record.from_rrset(rrset)
    assert rec.owner_hash == "0P9MHAVEQVM6T7VBL5LOP2U3T2RP3TOM"
    assert rec.zone == ZONE
    assert rec.next_hashed_owner_name == "35MTHGPGCU1QG68FAB165KLNSNK3DPVL"
    assert rec.hash_algorithm == 1
    assert rec.flags == 0
    assert rec.salt == "-"
    assert rec.iterations == 1
    assert "NSEC3PARAM" in rec.types


def test_record_from_wrong_rrset():
    with pytest.raises(ValueError):
        NSEC3Record.from_rrset(record.a("a.example.com.", "192.0.2.1"))


def example_zone() -> ZoneFile:
    zonefile = ZoneFile.new(ZONE, dns.name.from_text("primary1.nameservers.com."))
    zonefile.add(record.a("a.example.com.", "1.2.3.4"))
    zonefile.add(record.a("c.example.com.", "1.2.3.5"))
    zonefile.add(record.a("x.example.com.", "1.2.3.6"))
    return zonefile


def test_table_from_zone():
    table = HashedNameTable.from_zone(example_zone())
    expected = HashedNameTable.from_names(
        ["example.com.", "a.example.com.", "c.example.com.", "x.example.com."]
    )
    assert table == expected
    assert len(table) == 4


def test_table_from_zone_with_empty_non_terminal():
    zonefile = example_zone()
    zonefile.add(record.a("deep.ent.example.com.", "1.2.3.7"))
    table = HashedNameTable.from_zone(zonefile)
    assert FIXTURE.hash("ent.example.com.") in table
    assert FIXTURE.hash("deep.ent.example.com.") in table


def test_table_with_dynamic_hosts():
    hosts = [dns.name.from_text(f"primary{i}.nameservers.com.") for i in (3, 10)]
    static = [FIXTURE.hash("alice.nameservers.com.")]
    table = HashedNameTable.from_static_and_dynamic(static, hosts)
    assert len(table) == 3
    assert FIXTURE.hash(hosts[1]) in table


def test_table_with_unrecognized_host():
    hosts = [dns.name.from_text("ns1.nameservers.com.")]
    with pytest.raises(ValueError):
        HashedNameTable.from_static_and_dynamic([], hosts)


def nsec3_rrset(rec: NSEC3Record) -> dns.rrset.RRset:
    rdata = dns.rdata.from_text(
        dns.rdataclass.IN,
        dns.rdatatype.NSEC3,
        f"{rec.hash_algorithm} {rec.flags} {rec.iterations} {rec.salt} "
        f"{rec.next_hashed_owner_name} A RRSIG",
    )
    owner = dns.name.from_text(rec.owner_hash, rec.zone)
    return dns.rrset.from_rdata(owner, 3600, rdata)


def nxdomain_response(records) -> dns.message.Message:
    query = dns.message.make_query("b.example.com.", "A", want_dnssec=True)
    response = dns.message.make_response(query)
    response.set_rcode(dns.rcode.NXDOMAIN)
    for rec in records:
        response.authority.append(nsec3_rrset(rec))
    return response


def endpoints(rec: NSEC3Record):
    return rec.owner_hash, rec.next_hashed_owner_name


def nxdomain_proof(table: HashedNameTable):
    """Records a correct server returns for b.example.com."""
    chain = {rec.owner_hash: rec for rec in hash_chain(table, ZONE)}
    ce = chain[FIXTURE.hash(ZONE)]
    nc = chain[table.find_prev(FIXTURE.hash("b.example.com."))]
    wc = chain[table.find_prev(FIXTURE.hash("*.example.com."))]
    return ce, nc, wc


def test_nxdomain_proof():
    table = HashedNameTable.from_zone(example_zone())
    ce, nc, wc = nxdomain_proof(table)
    unique = list({rec.owner_hash: rec for rec in (ce, nc, wc)}.values())

    checker = NSEC3Checker(nxdomain_response(unique), table)
    proof = checker.check_nxdomain("b.example.com.", "example.com.")
    checker.check_extraneous_rrs()

    assert endpoints(proof.closest_encloser) == endpoints(ce)
    assert endpoints(proof.next_closer) == endpoints(nc)
    assert endpoints(proof.wildcard) == endpoints(wc)
    for rec in proof.records:
        assert rec.types == ("A", "RRSIG")


def test_nxdomain_proof_from_records():
    table = HashedNameTable.from_zone(example_zone())
    ce, nc, wc = nxdomain_proof(table)
    checker = NSEC3Checker({ce, nc, wc}, table)
    proof = checker.check_nxdomain("b.example.com.", "example.com.", wildcard=False)
    assert proof.wildcard is None
    assert proof.records == [ce, nc]


def test_nxdomain_wrong_rcode():
    table = HashedNameTable.from_zone(example_zone())
    response = nxdomain_response(set(nxdomain_proof(table)))
    response.set_rcode(dns.rcode.NOERROR)
    with pytest.raises(NSEC3ProofError):
        NSEC3Checker(response, table).check_nxdomain("b.example.com.", "example.com.")


def test_missing_wildcard_proof():
    table = HashedNameTable.from_zone(example_zone())
    ce, nc, wc = nxdomain_proof(table)
    if len({ce.owner_hash, nc.owner_hash, wc.owner_hash}) != 3:
        pytest.skip("wildcard proof shares a record with another proof")
    checker = NSEC3Checker([ce, nc], table)
    checker.closest_encloser_proof("b.example.com.", "example.com.")
    checker.next_closer_name_proof("b.example.com.")
    with pytest.raises(NSEC3ProofError, match="wildcard"):
        checker.wildcard_proof("example.com.")


def test_closest_encloser_wrong_next():
    table = HashedNameTable.from_zone(example_zone())
    ce, nc, _ = nxdomain_proof(table)
    broken = replace(ce, next_hashed_owner_name=table.find_prev(ce.owner_hash))
    records = [broken]
    if nc.owner_hash != ce.owner_hash:
        records.append(nc)
    checker = NSEC3Checker(records, table)
    with pytest.raises(NSEC3ProofError, match="closest encloser"):
        checker.closest_encloser_proof("b.example.com.", "example.com.")


def test_covering_record_with_wrong_bounds():
    table = HashedNameTable.from_zone(example_zone())
    needle = FIXTURE.hash("b.example.com.")
    owner = table.find_prev(needle)
    # covers the needle, but skips over an existing name
    wide = NSEC3Record(owner, ZONE, table.find_next(table.find_next(owner)), 1, 0, "-", 1)
    checker = NSEC3Checker([wide], table)
    with pytest.raises(NSEC3ProofError, match="neighbours"):
        checker.next_closer_name_proof("b.example.com.")


def test_proof_of_existing_name():
    table = HashedNameTable.from_zone(example_zone())
    checker = NSEC3Checker(hash_chain(table, ZONE), table)
    with pytest.raises(NSEC3ProofError, match="exists"):
        checker.next_closer_name_proof("a.example.com.")


def test_closest_encloser_not_in_zone():
    table = HashedNameTable.from_zone(example_zone())
    checker = NSEC3Checker(hash_chain(table, ZONE), table)
    with pytest.raises(NSEC3ProofError, match="does not exist"):
        checker.closest_encloser_proof("x.b.example.com.", "b.example.com.")


def test_closest_encloser_must_enclose():
    table = HashedNameTable.from_zone(example_zone())
    checker = NSEC3Checker(hash_chain(table, ZONE), table)
    with pytest.raises(ValueError):
        checker.closest_encloser_proof("example.com.", "a.example.com.")


def test_extraneous_records():
    table = HashedNameTable.from_zone(example_zone())
    checker = NSEC3Checker(hash_chain(table, ZONE), table)
    checker.closest_encloser_proof("b.example.com.", "example.com.")
    with pytest.raises(NSEC3ProofError, match="extraneous"):
        checker.check_extraneous_rrs()


@pytest.mark.parametrize(
    "field,change",
    [
        dnstest.util.param("iterations", {"iterations": 0}),
        dnstest.util.param("salt", {"salt": "AABBCCDD"}),
        dnstest.util.param("algorithm", {"hash_algorithm": 2}),
        dnstest.util.param("opt-out", {"flags": 1}),
        dnstest.util.param("bitmap", {"types": ("A", "NSEC3")}),
    ],
)
def test_parameters(field, change):  # pylint: disable=unused-argument
    table = HashedNameTable.from_zone(example_zone())
    records = hash_chain(table, ZONE)
    records[0] = replace(records[0], **change)
    with pytest.raises(NSEC3ParameterError):
        NSEC3Checker(records, table)


def test_parameter_error_is_not_proof_error():
    assert issubclass(NSEC3ParameterError, AssertionError)
    assert issubclass(NSEC3ProofError, AssertionError)
    assert not issubclass(NSEC3ParameterError, NSEC3ProofError)


def test_duplicate_owner():
    table = HashedNameTable.from_zone(example_zone())
    rec = hash_chain(table, ZONE)[0]
    with pytest.raises(NSEC3ProofError, match="duplicate"):
        NSEC3Checker([rec, rec], table)


def test_nsec3_outside_authority():
    table = HashedNameTable.from_zone(example_zone())
    response = nxdomain_response([])
    response.answer.append(nsec3_rrset(hash_chain(table, ZONE)[0]))
    with pytest.raises(NSEC3ProofError, match="outside of AUTHORITY"):
        NSEC3Checker(response, table)


def test_failure_message_lists_table():
    table = HashedNameTable.from_zone(example_zone())
    checker = NSEC3Checker([], table)
    with pytest.raises(NSEC3ProofError) as excinfo:
        checker.next_closer_name_proof("b.example.com.")
    for entry in table:
        assert entry in str(excinfo.value)
