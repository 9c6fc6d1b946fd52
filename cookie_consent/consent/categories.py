"""
Category normalisation for consent decisions
Keeps accepted/rejected lists a partition of the configured category keys
"""

from typing import Iterable, List, Tuple
import structlog

from ..config import BannerConfig
from .models import ConsentRecord

logger = structlog.get_logger(__name__)


def normalize_categories(config: BannerConfig, categories: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Split a requested category set into (accepted, rejected).

    Required categories are always accepted, unknown keys are dropped and
    rejected is the complement of accepted over the configured keys.
    """
    known = config.category_keys()
    requested = list(dict.fromkeys(categories))

    unknown = [category for category in requested if category not in known]
    if unknown:
        logger.warning("Ignoring unknown consent categories", categories=unknown)

    accepted = [key for key in known if key in requested or config.is_required(key)]
    rejected = [key for key in known if key not in accepted]
    return accepted, rejected


def repair_record(config: BannerConfig, record: ConsentRecord) -> ConsentRecord:
    """Bring a stored record back in line with the partition invariant"""
    missing = [key for key in config.required_categories() if key not in record.accepted_categories]
    overlap = [key for key in record.rejected_categories if key in record.accepted_categories]
    if not missing and not overlap:
        return record

    logger.info("Repairing stored consent record",
                consent_id=record.consent_id,
                added_required=missing,
                removed_from_rejected=overlap)

    accepted = record.accepted_categories + missing
    rejected = [key for key in record.rejected_categories if key not in accepted]
    return record.model_copy(update={
        "accepted_categories": accepted,
        "rejected_categories": rejected,
    })
