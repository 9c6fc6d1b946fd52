"""
Script gating on the server and in the page
"""

from .markup import ScriptTag, block_script, restore_script, parse_script, parse_scripts, detect_kind
from .gate import ScriptGate, Provider, RegisteredScript
from .page import PageDocument, ScriptElement
from .client import ClientScriptBlocker

__all__ = [
    "ScriptTag",
    "block_script",
    "restore_script",
    "parse_script",
    "parse_scripts",
    "detect_kind",
    "ScriptGate",
    "Provider",
    "RegisteredScript",
    "PageDocument",
    "ScriptElement",
    "ClientScriptBlocker",
]
