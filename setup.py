#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup script for ClimaRisk

Climate risk analytics: flood, drought and landslide scoring, composite
risk indices, and async point, grid and time-series assessments.
"""

from pathlib import Path

from setuptools import find_packages, setup

VERSION = "0.1.0"

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")
else:
    long_description = "ClimaRisk - climate risk analytics engine"

setup(
    name="climarisk",
    version=VERSION,
    description="Climate risk analytics engine",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["climarisk", "climarisk.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2",
        "prometheus_client",
        "httpx",
        "redis>=5.0.1",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "hypothesis",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Atmospheric Science",
    ],
)
