"""
Version import for the converter backend.

Single source of truth: mariadbconverter/_version.py
In Docker, the mariadbconverter/ folder is copied to /app/mariadbconverter/
"""

from mariadbconverter._version import __version__, __release_date__
