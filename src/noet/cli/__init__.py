"""Command line interface (``noet``)."""
