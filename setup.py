"""Setup script for the temporal HTN planner package"""

from pathlib import Path
from setuptools import find_packages, setup

readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

setup(
    name="temporal-htn",
    version="0.1.0",
    description="Backtracking HTN planner with a Simple Temporal Network solver",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="temporal-htn",
    packages=find_packages(include=["temporal_htn", "temporal_htn.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0.0",
        "pydantic>=2.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "temporal-htn=temporal_htn.cli:main",
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
