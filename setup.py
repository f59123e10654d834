"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/zackees/dawnbuild"
KEYWORDS = "dawn webgpu build-system clang static-library git pinned-dependencies"
HERE = os.path.dirname(os.path.abspath(__file__))


def get_version() -> str:
    with open(os.path.join(HERE, "src", "dawnbuild", "__init__.py"), encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=", 1)[1].strip().strip("\"'")
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name="dawnbuild",
        version=get_version(),
        description="Builds the Dawn WebGPU library from pinned git sources",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        python_requires=">=3.10",
        install_requires=[
            "requests>=2.31",
            "tqdm>=4.66",
        ],
        extras_require={
            "test": [
                "pytest>=7.4",
            ],
        },
        entry_points={
            "console_scripts": [
                "dawnbuild=dawnbuild.cli:main",
            ],
        },
        package_data={"dawnbuild": ["shims/*.cpp", "shims/zig_mingw_pthread/*.h"]},
        include_package_data=True)
