#!/usr/bin/env python
"""Setup script for the animethumb thumbnail generator."""

from setuptools import setup, find_packages

setup(
    name="animethumb",
    version="0.1.0",
    description="Generate anime-style video thumbnails from a title and a style using the OpenRouter image API",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.31.0",
        "streamlit>=1.32.0,<1.59",
        "Pillow>=9.5.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "animethumb=animethumb.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Multimedia :: Graphics",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="anime thumbnail image-generation openrouter streamlit",
)
