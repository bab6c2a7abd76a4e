"""WebAudit: submit a website URL, run independent checks, stream progress."""

__version__ = "0.1.0"
