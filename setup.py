# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Setup configuration for vsphere_tpm_pytools package.

from setuptools import find_packages, setup

setup(
    name="vsphere_tpm_pytools",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyvmomi>=8.0.1.0",
        "requests>=2.25.0",
        "cryptography>=39.0.0",
        "urllib3>=1.26.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vsphere-tpm-query=vsphere_tpm_pytools.query_tpm:main",
        ],
    },
    description="Python tools for retrieving host TPM attestation data from vSphere",
    author="Isaac Matthews",
    author_email="isaac@hpe.com",
    license="MIT",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
    ],
)
