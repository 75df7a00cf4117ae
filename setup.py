# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for FlowRunner workflow execution engine
"""

from setuptools import setup, find_packages

setup(
    name="flowrunner",
    version="1.0.0",
    description="Event-driven workflow execution engine with suspend/resume on interactive replies",
    author="Jason Cafarelli",
    packages=find_packages(include=["flowrunner", "flowrunner.*"]),
    python_requires=">=3.8",
    install_requires=[
        "pydantic>=2.0.0",
        "httpx>=0.24.0",
        "aiofiles>=23.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ]
    },
)
