"""
Visitor-side consent agent
"""

from .agent import ConsentClient, ClientSettings, CookieJar

__all__ = ["ConsentClient", "ClientSettings", "CookieJar"]
