"""logtally: aggregate logging-call counts from parallel test workers into one report."""

__version__ = "0.3.0"
