#!/usr/bin/env python
from setuptools import setup, find_packages


with open("README.md", encoding="utf-8") as f:
    long_description = f.read()


setup(
    name="reversible",
    description="Functions that remember how to undo themselves, including everything they called.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    use_scm_version={
        "write_to": "Lib/reversible/_version.py",
        "fallback_version": "0.1.0",
    },
    license="MIT",
    package_dir={"": "Lib"},
    packages=find_packages("Lib"),
    install_requires=[],
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
    },
    setup_requires=["setuptools_scm"],
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Framework :: AsyncIO",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: MIT License",
    ],
)
