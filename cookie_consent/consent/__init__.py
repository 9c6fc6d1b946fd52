"""
Consent records and category normalisation

The state manager and API handler live in ``consent.manager`` and
``consent.api``; they depend on the storage and event packages, which in
turn depend on the models exported here.
"""

from .models import ConsentRecord, ConsentMethod, ConsentSummary, RequestContext, parse_record
from .categories import normalize_categories, repair_record

__all__ = [
    "ConsentRecord",
    "ConsentMethod",
    "ConsentSummary",
    "RequestContext",
    "parse_record",
    "normalize_categories",
    "repair_record",
]
