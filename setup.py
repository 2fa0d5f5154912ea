"""
fromtrace Build Configuration

Usage:
    pip install -e .            # Library and CLI
    pip install -e ".[test]"    # Plus the test suite dependencies
"""

from setuptools import setup, find_packages

setup(
    name="fromtrace",
    version="0.1.0",
    description="Character-level provenance tracking and traversal for string values",
    packages=find_packages(include=["fromtrace", "fromtrace.*"]),
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "loguru>=0.7",
        "aiosqlite>=0.19",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "fromtrace=fromtrace.cli:main",
        ],
    },
    python_requires=">=3.11",
)
