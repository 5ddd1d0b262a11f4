"""Material request resolver: free-text takeoffs → catalog codes and quantities."""

__version__ = "0.1.0"
