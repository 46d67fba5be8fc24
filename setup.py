#!/usr/bin/env python

from setuptools import setup, find_packages

setup(
    name="c14age-python",
    python_requires=">=3.11",
    version="0.1.0",
    description="Steady-state radiocarbon age of transport matrix ocean circulations, with a clickable map widget",
    long_description="Simulates the steady-state radiocarbon concentration of the global ocean from a transport matrix circulation (e.g. OCIM) and converts it into a radiocarbon age. Air-sea exchange over the top layer and radioactive decay are combined with the circulation into a state function whose root is found with a quasi-Newton solver. The results can be explored from all angles with matplotlib recipes (horizontal and meridional slices, zonal averages, profiles, basin averages) and a clickable map widget for Jupyter and marimo that turns a click on the map into a (lon, lat) selection.",
    author="pyC14 developers",
    packages=find_packages(exclude=["tests", "demos"]),
    install_requires=[
        "numpy",
        "scipy",
        "xarray",
        "netcdf4",
        "setuptools",
        "matplotlib",
        "cmocean",
        "pyyaml",
        "tqdm",
        "shapely",
        "geopandas",
        "anywidget",
        "traitlets",
    ],
    extras_require={
        "test": ["pytest"],
        "demo": ["marimo"],
    },
    classifiers=[
        "Programming Language :: Python :: 3.13",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Scientific/Engineering :: Oceanography",
    ],
)
