"""
Consent state manager
Owns the current consent decision for one request and its persistence
"""

from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List, Optional
import structlog

from ..config import BannerConfig, CookieSettings
from ..constants import ConsentEventTypes
from ..exceptions import StorageBackendError
from ..events.dispatcher import EventDispatcher
from ..events.models import ConsentEvent
from ..storage.base import ConsentStorage
from ..utils.ids import generate_consent_id
from .categories import normalize_categories, repair_record
from .models import (
    ConsentMethod,
    ConsentRecord,
    ConsentSummary,
    RequestContext,
    parse_record,
    trim_history,
)

logger = structlog.get_logger(__name__)


class ConsentStateManager:
    """
    Consent lifecycle for the visitor behind one request.

    The current record is loaded from the cookie token on construction.
    Writes persist first and only then replace the in-memory state, so a
    failing backend leaves the manager unchanged.
    """

    def __init__(
        self,
        config: BannerConfig,
        storage: ConsentStorage,
        events: EventDispatcher,
        context: Optional[RequestContext] = None,
        user_identifier: Optional[str] = None,
    ):
        self.config = config
        self.storage = storage
        self.events = events
        self.context = context or RequestContext()
        self._user_identifier = user_identifier

        self._record: Optional[ConsentRecord] = None
        self._token: Optional[str] = None
        self._withdrawn = False

        self._load()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self) -> None:
        token = self.context.cookies.get(self.config.cookie_name)
        if not token:
            return

        try:
            record = self.storage.retrieve(token)
        except StorageBackendError as e:
            logger.error("Consent lookup failed, treating visitor as undecided",
                         error_code=e.error_code, details=e.details)
            return

        self._token = token
        if record is None:
            return

        record = repair_record(self.config, record)
        if self._is_expired(record):
            logger.info("Stored consent expired", consent_id=record.consent_id,
                        expiry_days=self.config.cookie_expiry_days)
            self.events.dispatch(ConsentEvent(ConsentEventTypes.EXPIRED, record=record))
            return

        self._record = record

    def _is_expired(self, record: ConsentRecord) -> bool:
        max_age = timedelta(days=self.config.cookie_expiry_days)
        return datetime.now(UTC) - record.timestamp > max_age

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def record(self) -> Optional[ConsentRecord]:
        return self._record

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user_identifier(self) -> Optional[str]:
        return self._user_identifier

    @user_identifier.setter
    def user_identifier(self, value: Optional[str]) -> None:
        # Applies to records created from now on
        self._user_identifier = value

    def has_consent(self) -> bool:
        return self._record is not None

    def has_consent_for(self, category: str) -> bool:
        if self.config.get_category(category) is None:
            return False
        if self._record is None:
            return self.config.is_required(category)
        return self._record.has_category(category)

    def accepted_categories(self) -> List[str]:
        if self._record is None:
            return self.config.required_categories()
        return list(self._record.accepted_categories)

    def rejected_categories(self) -> List[str]:
        if self._record is None:
            return self.config.optional_categories()
        return list(self._record.rejected_categories)

    def should_show_banner(self) -> bool:
        if self.config.show_only_once and self.has_consent():
            return False
        if self.config.respect_do_not_track and self.context.do_not_track:
            return False
        return not self.has_consent()

    def summary(self) -> Dict[str, Any]:
        """Client-facing view: hasConsent, accepted, rejected, consentId, timestamp"""
        record = self._record
        return ConsentSummary(
            hasConsent=record is not None,
            accepted=self.accepted_categories(),
            rejected=self.rejected_categories(),
            consentId=record.consent_id if record else None,
            timestamp=record.timestamp.isoformat() if record else None,
        ).model_dump()

    def cookie_value(self) -> str:
        return self._token or ""

    def cookie_settings(self) -> CookieSettings:
        return self.config.cookie_settings()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def grant(
        self,
        categories: List[str],
        method: str = ConsentMethod.BANNER,
        metadata: Optional[Dict[str, Any]] = None,
        peer_previous: Optional[Dict[str, Any]] = None,
    ) -> ConsentRecord:
        """
        Record a new consent decision.

        Args:
            categories: Categories the visitor accepted
            method: How the decision was made
            metadata: Free-form context; ``is_update`` overrides update detection
            peer_previous: Previous record as known by the other writer

        Returns:
            The newly committed record

        Raises:
            StorageBackendError: When the adapter cannot persist the record
        """
        metadata = dict(metadata or {})
        accepted, rejected = normalize_categories(self.config, categories)

        depth = self.config.history_depth
        if peer_previous is not None:
            previous = trim_history(peer_previous, depth)
        elif self._record is not None:
            previous = self._record.snapshot(depth)
        else:
            previous = None

        if "is_update" in metadata:
            is_update = bool(metadata["is_update"])
        else:
            is_update = previous is not None

        context = self.context
        record = ConsentRecord(
            consent_id=generate_consent_id(context.ip_address, context.user_agent),
            accepted_categories=accepted,
            rejected_categories=rejected,
            user_identifier=self._user_identifier,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            page_url=context.page_url,
            referrer=context.referrer,
            consent_method=method,
            previous_consent=previous if is_update else None,
            metadata=metadata,
        )

        token = self._persist(record)

        self._record = record
        self._token = token
        self._withdrawn = False

        event_name = ConsentEventTypes.UPDATED if is_update else ConsentEventTypes.GIVEN
        logger.info("Consent recorded",
                    event_type=event_name,
                    consent_id=record.consent_id,
                    method=record.consent_method,
                    accepted=accepted)
        self.events.dispatch(ConsentEvent(event_name, record=record))
        return record

    def accept_all(
        self,
        method: str = ConsentMethod.ACCEPT_ALL,
        metadata: Optional[Dict[str, Any]] = None,
        peer_previous: Optional[Dict[str, Any]] = None,
    ) -> ConsentRecord:
        return self.grant(self.config.category_keys(), method, metadata, peer_previous)

    def reject_all(
        self,
        method: str = ConsentMethod.REJECT_ALL,
        metadata: Optional[Dict[str, Any]] = None,
        peer_previous: Optional[Dict[str, Any]] = None,
    ) -> ConsentRecord:
        return self.grant(self.config.required_categories(), method, metadata, peer_previous)

    def withdraw(
        self,
        metadata: Optional[Dict[str, Any]] = None,
        peer_snapshot: Optional[Dict[str, Any]] = None,
    ) -> Optional[ConsentRecord]:
        """
        Withdraw the current consent.

        The withdrawn record is the live one, else the one reconstructed from
        ``peer_snapshot``. Returns None when there was nothing to withdraw.
        """
        if self._withdrawn:
            return None

        resolved = self._record
        if resolved is None and peer_snapshot is not None:
            resolved = parse_record(peer_snapshot)

        if self._token:
            self.storage.delete(self._token)

        self._record = None
        self._token = None

        if resolved is None:
            logger.debug("Withdraw requested without a resolvable consent")
            return None

        self._withdrawn = True
        logger.info("Consent withdrawn", consent_id=resolved.consent_id)
        self.events.dispatch(ConsentEvent(
            ConsentEventTypes.WITHDRAWN,
            record=resolved,
            additional_data=dict(metadata or {}),
        ))
        return resolved

    def _persist(self, record: ConsentRecord) -> str:
        if self._token and not self.storage.self_contained:
            if self.storage.update(self._token, record):
                return self._token
            logger.debug("Stored consent token no longer live, storing afresh",
                         consent_id=record.consent_id)
        return self.storage.store(record)
