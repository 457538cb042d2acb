import logging
import os
import re

import setuptools

logger = logging.getLogger(__name__)

ROOT_DIR = os.path.dirname(__file__)


def find_version(*paths):
    version_file_path = os.path.join(ROOT_DIR, *paths)
    with open(version_file_path) as file_stream:
        version_match = re.search(
            r"^__version__ = ['\"]([^'\"]*)['\"]", file_stream.read(), re.M
        )
        if version_match:
            return version_match.group(1)
        raise RuntimeError(f"Failed to find version at: {version_file_path}")


with open(os.path.join(ROOT_DIR, "README.md"), "r", encoding="utf-8") as fh:
    long_description = fh.read()


setuptools.setup(
    name="tensorcat",
    version=find_version("tensorcat", "__init__.py"),
    description="Canonical Arrow fixed and variable shape tensor extension arrays.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(where=".", include=["tensorcat*"]),
    extras_require={
        "test": ["pytest >= 7.0.0"],
    },
    install_requires=[
        "numpy >= 1.21.5",
        "pyarrow >= 17.0.0",
        "ray >= 2.20.0",
    ],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.9",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
)
