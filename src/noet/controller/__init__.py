"""Controller-side helpers used by ``noet call`` and ``noet publish``."""

from noet.controller.client import CommandError, ControllerServer
from noet.controller.images import collect_images, extract_image_references

__all__ = ["CommandError", "ControllerServer", "collect_images", "extract_image_references"]
