"""Product margin analyzer: spreadsheet import, margin statistics and target pricing."""

__version__ = "0.1.0"
