"""
Curtain - Cross-Dataset Protein Search

Searches proteomics differential analysis sessions ("curtains") for proteins,
summarises hits across datasets and pivots them into comparison matrices.
"""

__version__ = "0.1.0"
__author__ = "Curtain Development Team"
__description__ = "Cross-dataset protein search over downloaded curtain sessions"

# Main CLI entry point
from .cli import main

__all__ = ["main"]
