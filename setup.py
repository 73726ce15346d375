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


from setuptools import setup

setup(
    name="dnstest",
    version="0.1.0",
    description="NSEC3 conformance tests for DNS resolvers in isolated docker sandboxes",
    url="https://www.isc.org/bind",
    author="Internet Systems Consortium, Inc",
    author_email="info@isc.org",
    license="MPL",
    python_requires=">=3.8",
    install_requires=["dnspython>=2.6.0", "jinja2", "psutil", "pytest"],
    extras_require={"test": ["hypothesis"]},
    packages=["dnstest", "dnstest.hypothesis", "dnstest.log", "dnstest.vars"],
    package_data={"dnstest": ["templates/*.j2"]},
    entry_points={"console_scripts": ["dnstest-purge=dnstest.purge:main"]},
)
