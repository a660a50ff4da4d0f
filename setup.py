"""Setup script for Plugin Conflict Mapper"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
this_directory = Path(__file__).parent
long_description = ""
readme_path = this_directory / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

setup(
    name="plugin-conflict-mapper",
    version="0.1.0",
    description="Conflict, overlap and keep/review/replace analysis for installed host plugins",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={"conflict_mapper": ["data/*.toml"]},
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Topic :: Software Development :: Quality Assurance",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.20.0",
        "scikit-learn>=1.0.0",
        "rich>=12.0.0",
        "typer>=0.9.0",
        "diskcache>=5.4.0",
        "packaging>=21.0",
        "tomli>=2.0.0; python_version < '3.11'",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "conflict-mapper=conflict_mapper.cli:main",
        ],
    },
    keywords="wordpress plugins conflicts hooks static-analysis compatibility",
)
