"""prodsheet: production planning workflows over a shared Google spreadsheet."""

__version__ = "0.1.0"
