"""
Serverless entry point.

Function-per-invocation hosts import this module and look for `app`. A warm
process reuses the same app, and with it the cached store connection; a cold
one builds both again.
"""

from main import app

__all__ = ["app"]
