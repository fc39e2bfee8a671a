"""flutterdump - extract live UI layout from running Flutter apps."""

__version__ = "0.1.0"
