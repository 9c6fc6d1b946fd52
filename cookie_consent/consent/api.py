"""
Consent API action dispatch
Server half of the client/server consent exchange
"""

from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
import structlog

from ..constants import ApiActions, ErrorCodes
from .manager import ConsentStateManager
from .models import ConsentMethod, ConsentRecord

logger = structlog.get_logger(__name__)


class ConsentActionRequest(BaseModel):
    action: str

    model_config = {"extra": "allow"}


class GiveConsentRequest(BaseModel):
    categories: List[str] = Field(default_factory=list)
    method: str = ConsentMethod.API.value
    metadata: Dict[str, Any] = Field(default_factory=dict)
    previous_consent: Optional[Dict[str, Any]] = None


class BulkConsentRequest(BaseModel):
    method: str = ConsentMethod.API.value
    metadata: Dict[str, Any] = Field(default_factory=dict)
    previous_consent: Optional[Dict[str, Any]] = None


class WithdrawConsentRequest(BaseModel):
    metadata: Dict[str, Any] = Field(default_factory=dict)
    previous_consent: Optional[Dict[str, Any]] = None


def _error(message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return body


def _validation_details(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    return [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]


class ConsentApiHandler:
    """Maps JSON action payloads onto a per-request consent manager"""

    def __init__(self, manager: ConsentStateManager):
        self.manager = manager
        self._actions: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            ApiActions.GET_CONSENT: self._get_consent,
            ApiActions.GIVE_CONSENT: self._give_consent,
            ApiActions.ACCEPT_ALL: self._accept_all,
            ApiActions.REJECT_ALL: self._reject_all,
            ApiActions.WITHDRAW_CONSENT: self._withdraw_consent,
        }

    def handle(self, payload: Any) -> Dict[str, Any]:
        """
        Execute one API action.

        Soft failures (unknown action, malformed payload, no categories) come
        back as ``{"success": False, "error": ...}``. Storage failures raise.
        """
        try:
            request = ConsentActionRequest.model_validate(payload)
        except PydanticValidationError as exc:
            logger.warning("Rejected malformed consent API payload")
            return _error(ErrorCodes.INVALID_REQUEST, _validation_details(exc))

        handler = self._actions.get(request.action)
        if handler is None:
            logger.warning("Unknown consent API action", action=request.action)
            return _error(ErrorCodes.UNKNOWN_ACTION)

        try:
            return handler(payload)
        except PydanticValidationError as exc:
            logger.warning("Rejected malformed consent API payload", action=request.action)
            return _error(ErrorCodes.INVALID_REQUEST, _validation_details(exc))

    def _written(self, record: ConsentRecord) -> Dict[str, Any]:
        return {
            "success": True,
            "data": record.to_dict(),
            "cookie": self.manager.cookie_value(),
            "cookieSettings": self.manager.cookie_settings().model_dump(),
        }

    def _get_consent(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"success": True, "data": self.manager.summary()}

    def _give_consent(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = GiveConsentRequest.model_validate(payload)
        if not request.categories:
            return _error(ErrorCodes.NO_CATEGORIES)
        record = self.manager.grant(
            request.categories,
            request.method,
            request.metadata,
            request.previous_consent,
        )
        return self._written(record)

    def _accept_all(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = BulkConsentRequest.model_validate(payload)
        record = self.manager.accept_all(request.method, request.metadata, request.previous_consent)
        return self._written(record)

    def _reject_all(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = BulkConsentRequest.model_validate(payload)
        record = self.manager.reject_all(request.method, request.metadata, request.previous_consent)
        return self._written(record)

    def _withdraw_consent(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = WithdrawConsentRequest.model_validate(payload)
        self.manager.withdraw(request.metadata, request.previous_consent)
        return {"success": True, "data": {"withdrawn": True}}
