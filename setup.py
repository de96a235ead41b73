"""Setup script for the poolkit package.

Runtime requirements live in requirements.txt; build-system and pytest
settings live in pyproject.toml.
"""

import re
from setuptools import setup, find_packages

# Read the long description from README.md
with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

# Read requirements from requirements.txt
with open("requirements.txt") as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith("#")]

# Extract version from the package to ensure consistency
def get_version():
    with open("poolkit/__init__.py", encoding="utf-8") as f:
        content = f.read()
    version_match = re.search(r'__version__ = "([^"]+)"', content)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version in poolkit/__init__.py")

setup(
    name="poolkit",
    version=get_version(),
    description="A bounded asyncio pool of expensive, reusable handles such as database connections",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=requirements,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Framework :: AsyncIO",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries",
    ],
    python_requires=">=3.10",
    keywords="pool, connection-pool, asyncio, database",
    extras_require={
        "mysql": ["aiomysql>=0.2.0"],
        "dev": [
            "pytest>=7.3.1",
            "pytest-asyncio>=0.21.0",
            "aiomysql>=0.2.0",
        ],
    },
)
