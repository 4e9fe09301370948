"""
API package for the SocialClaw server.

This module exposes common metadata and ensures package initialization.
"""

__all__ = ["__version__", "__author__"]
__version__ = "0.1.0"
__author__ = "SocialClaw Team"
