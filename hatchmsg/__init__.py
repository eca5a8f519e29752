"""A messaging service that stores SMS, MMS and email conversations in SQLite and serves them over HTTP."""

__version__ = "0.1.0"