#!/usr/bin/env python3
"""
browser_schedule.py - Route URLs to a work or personal browser on a schedule
"""

from setuptools import setup

# Read version from __version__.py
exec(open("__version__.py").read())

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="browser-schedule",
    version=__version__,
    author="browser-schedule contributors",
    description="Opens links in your work or personal browser depending on the time of day",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=["browser_schedule", "__version__"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP :: Browsers",
        "Topic :: Utilities",
    ],
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "browser-schedule=browser_schedule:main",
        ],
    },
    install_requires=[
        "pydantic>=2.0",
        "tomli>=1.1; python_version < '3.11'",
    ],
    extras_require={
        "test": [
            "pytest>=6.0",
        ],
        "dev": [
            "pytest>=6.0",
            "black",
            "flake8",
        ],
    },
    keywords="browser, url, router, schedule, work, personal",
)
