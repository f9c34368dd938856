"""Campaign note tooling: reference matching, entity extraction and usage quotas."""

__version__ = "0.1.0"
