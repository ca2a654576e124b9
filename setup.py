"""
Setup configuration for refnotes package.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="refnotes",
    version="0.1.0",
    description="Cite copied passages in Markdown notes and keep per-note bibliographies in sync",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Text Processing :: Markup",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
    install_requires=[
        "bibtexparser>=1.4,<2",  # Name splitting for APA author lists
        "pyperclip>=1.8.0",  # Clipboard input for the CLI
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pyyaml>=6.0",  # Front-matter compatibility tests
        ],
    },
    entry_points={
        "console_scripts": [
            "refnotes=refnotes.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
