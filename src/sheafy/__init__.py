"""
Sheafy - bundle a directory tree into one text document.

This package scans a directory tree, filters files through .gitignore rules
and the patterns configured in ``sheafy.toml``, renders every kept file
through a template and sends the result to the clipboard, an editor view, or
a bundle file, so a whole project can be handed to an LLM in one paste.
"""

__version__ = "0.1.0"
__author__ = "Sheafy Team"
