#!/usr/bin/python3
# Setup file for packrat
# Copyright (C) 2008-2022 Jelmer Vernooĳ <jelmer@jelmer.uk>
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["pytest"]

setup(
    name="packrat",
    version="0.1.0",
    description="Loose object store and smart HTTP clone client for git repositories",
    license="Apache-2.0 OR GPL-2.0-or-later",
    packages=["packrat"],
    package_data={"": ["py.typed"]},
    python_requires=">=3.10",
    install_requires=["urllib3>=2.0"],
    extras_require={
        "test": tests_require,
    },
    entry_points={
        "console_scripts": ["packrat=packrat.cli:_main"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
