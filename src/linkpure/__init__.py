"""LinkPure - URL rewrite rule engine.

Resolves rewrite chains for outgoing URLs and builds shared rule bundles
from external tracking-parameter providers.
"""

__version__ = "0.1.0"
