#!/usr/bin/env python

"""The setup script."""

from setuptools import find_packages, setup

with open("README.rst") as readme_file:
    readme = readme_file.read()

with open("HISTORY.rst") as history_file:
    history = history_file.read()

requirements = [
    "cf_xarray",
    "numpy",
    "xarray",
    "cftime",
    "python-dateutil",
    "pyproj",
    "pint",
]

test_requires = ["pytest>=3"]

setup(
    author="xgeoref developers",
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Natural Language :: English",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    description="Xarray Georeferencing Tools",
    install_requires=requirements,
    extras_require={"test": test_requires},
    license="Apache-2.0",
    long_description=readme + "\n\n" + history,
    include_package_data=True,
    keywords="xgeoref",
    name="xgeoref",
    packages=find_packages(include=["xgeoref", "xgeoref.*"]),
    test_suite="tests",
    tests_require=test_requires,
    version="0.1.0",
    zip_safe=False,
)
