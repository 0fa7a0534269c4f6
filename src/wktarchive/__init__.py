"""wktarchive - model archive mutation engine.

The core package holds the ambient infrastructure (config, logging,
diagnostics). The engine itself is the ``model_archive`` plugin.
"""

__version__ = "1.0.0"
