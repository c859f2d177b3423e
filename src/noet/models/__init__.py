"""Data models: wire protocol, article parameters and step results."""
