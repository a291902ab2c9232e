"""shadow-sync: multi-scope knowledge synchronization with shadow repositories."""

__version__ = "0.4.0"
