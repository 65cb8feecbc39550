#!/usr/bin/env python
"""Setup configuration for the FR-Core HL7 bridge."""

from setuptools import find_packages, setup

setup(
    name="frcore-bridge",
    version="1.0.0",
    description="HL7 v2 to FHIR R4 FR-Core conversion and conformance validation",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"frcore_bridge.healthcare": ["frcore_definitions.json"]},
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "structlog>=23.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
)
