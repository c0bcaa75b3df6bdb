#!/usr/bin/python
# -*- encoding: utf-8 -*-
import ast
import re

from setuptools import find_packages
from setuptools import setup

## The version number lives in davsync/__init__.py only
_version_re = re.compile(r"__version__\s+=\s+(.*)")
with open("davsync/__init__.py", "rb") as f:
    version = str(
        ast.literal_eval(_version_re.search(f.read().decode("utf-8")).group(1))
    )

if __name__ == "__main__":
    test_packages = [
        "pytest",
        "pytest-cov",
        "coverage",
    ]

    setup(
        name="davsync",
        version=version,
        description="Optimistic-concurrency synchronization of Nextcloud tasks, events and contacts over CalDAV/CardDAV",
        long_description=open("README.md").read(),
        long_description_content_type="text/markdown",
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Developers",
            "License :: OSI Approved :: Apache Software License",
            "Operating System :: OS Independent",
            "Programming Language :: Python",
            "Programming Language :: Python :: 3",
            "Topic :: Office/Business :: Scheduling",
            "Topic :: Software Development :: Libraries " ":: Python Modules",
        ],
        keywords="caldav carddav webdav nextcloud icalendar vcard",
        license="Apache-2.0",
        packages=find_packages(exclude=["tests"]),
        include_package_data=True,
        zip_safe=False,
        python_requires=">=3.10",
        install_requires=[
            "lxml",
            "requests",
            "icalendar>=7.3",
            "python-dateutil",
            "typing_extensions",
        ],
        extras_require={
            "test": test_packages,
            "yaml": ["pyyaml"],
        },
    )
