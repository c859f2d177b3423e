"""Agent process wiring (``noet serve``)."""
