"""Configuration model, override and config file handling, a debouncer and PCAP helpers."""

__version__ = "0.1.0"