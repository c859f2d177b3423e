"""Command flows — the multi-step browser sequences behind each command.

* ``engine`` — ``FlowEngine`` with one method per browser command.
* ``compose`` — editor stages shared by create and update.
* ``content`` — image decoding, local path rewriting, body rendering.
* ``context`` — per-invocation ``FlowContext``.
"""

from noet.flows.context import FlowContext
from noet.flows.engine import FlowEngine

__all__ = ["FlowContext", "FlowEngine"]
