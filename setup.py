"""
Setuptools build script for cmdgen.

This file allows installation of the ``cmdgen`` package via
``pip install .``.  It declares the required dependencies and
registers a console script entry point named ``cmdgen``.  When
installed, users can invoke the CLI with ``cmdgen`` from their shell.

Install with ``pip install -e .[test]`` to run the test suite.
"""

from setuptools import setup, find_packages

setup(
    name="cmdgen",
    version="1.0.0",
    description="AI-powered CLI that generates, explains and troubleshoots shell commands",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "click>=8.0",
        "PyYAML>=5.4",
        "fastapi>=0.95",
        "uvicorn>=0.20",
        "httpx>=0.24",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "cmdgen=cmdgen.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
