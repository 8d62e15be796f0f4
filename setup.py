"""
Setup script for leitner-engine.

Leitner engine is the spaced-repetition core of a quiz trainer. It decides
which items are due, moves items between proficiency boxes, composes study
sessions and reports statistics:

1. Library - LeitnerEngine for hosts that bring their own catalog and storage
2. Developer CLI - inspect and drive the engine from the terminal

The 'leitner' command is the CLI entry point.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="leitner-engine",
    version="1.0.0",
    description="Leitner-box spaced-repetition scheduling and session engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Leitner Engine Contributors",
    packages=find_namespace_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "leitner=src.leitner.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition leitner quiz education",
)
