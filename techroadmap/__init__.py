"""
Top-level package for the tech-stack roadmap service.

This package ingests loosely structured roadmap spreadsheets (Excel
workbooks or CSV exports) into normalized tech stacks, keeps tech
stacks and company roadmaps in a document store, serves them over a
small HTTP API and publishes rendered roadmaps to GitHub Pages.  There
are no side effects on import; the CLI in :mod:`techroadmap.cli` and
the app factory in :mod:`techroadmap.api` wire the pieces together.
"""

__version__ = "1.0.0"
