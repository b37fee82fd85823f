#!/usr/bin/env python3
"""
Setup script for stonework (geometric analysis of stone masonry)
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

requirements = [
    "numpy>=1.20.0",
    "scipy>=1.8",
    "trimesh>=3.15.0",
    "networkx>=2.6",
    "pandas>=1.3",
    "matplotlib>=3.5.0",
    "Pillow>=9.0",
]

setup(
    name="stonework",
    version="0.1.0",
    description="Stone shape descriptors and line of minimum trace for masonry structures",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["stonework", "stonework.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=6.0",
            "pytest-cov",
            "black",
            "flake8",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "stonework=stonework.cli:main",
        ],
    },
)
