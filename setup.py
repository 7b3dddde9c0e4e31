#!/usr/bin/python3
# Setup file for subfetch
# Copyright (C) 2026 The subfetch developers
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

import os

from setuptools import setup


def get_version():
    """Read the version tuple from subfetch/__init__.py without importing it."""
    basedir = os.path.dirname(os.path.abspath(__file__))
    with open(os.path.join(basedir, "subfetch", "__init__.py")) as f:
        for line in f:
            if line.startswith("__version__"):
                version = line.split("=", 1)[1].strip().strip("()")
                return ".".join(part.strip() for part in version.split(","))
    raise RuntimeError("No version info found.")


setup(
    name="subfetch",
    version=get_version(),
    description="Fetch a single commit of a git remote using the cheapest "
    "strategy the server supports",
    license="Apache-2.0 OR GPL-2.0-or-later",
    packages=["subfetch"],
    package_data={"": ["py.typed"]},
    python_requires=">=3.10",
    install_requires=[
        "dulwich>=0.25.0",
        "urllib3>=2.2.2",
    ],
    entry_points={
        "console_scripts": ["subfetch=subfetch.cli:_main"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
