"""
Custom Exceptions for the Cookie Consent module

Provides a unified exception hierarchy for configuration, consent state,
storage backends and token cryptography.
"""

from typing import Optional, Dict, Any, List


class ConsentKitError(Exception):
    """
    Base exception for all cookie consent errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONSENT_KIT_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        result: Dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(ConsentKitError):
    """Raised when the banner configuration is invalid"""

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if setting:
            details["setting"] = setting
        super().__init__(message, "CONFIGURATION_ERROR", details)


class InvalidCategoryError(ConfigurationError):
    """Raised when an unknown cookie category is referenced"""

    def __init__(
        self,
        category: str,
        valid_categories: Optional[List[str]] = None
    ):
        details: Dict[str, Any] = {"invalid_category": category}
        if valid_categories:
            details["valid_categories"] = valid_categories
        super().__init__(
            message=f"Unknown cookie category: {category}",
            setting="categories",
            details=details
        )
        self.error_code = "INVALID_CATEGORY"


# =============================================================================
# STORAGE ERRORS
# =============================================================================

class StorageError(ConsentKitError):
    """Base exception for consent storage errors"""

    def __init__(
        self,
        message: str,
        error_code: str = "STORAGE_ERROR",
        backend: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if backend:
            details["backend"] = backend
        super().__init__(message, error_code, details)


class StorageBackendError(StorageError):
    """Raised when the storage backend fails (I/O, connection, driver)"""

    def __init__(
        self,
        operation: str,
        backend: str,
        reason: Optional[str] = None
    ):
        details: Dict[str, Any] = {"operation": operation}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=f"Storage backend failure during {operation}",
            error_code="STORAGE_BACKEND_ERROR",
            backend=backend,
            details=details
        )


# =============================================================================
# ENCRYPTION ERRORS
# =============================================================================

class EncryptionError(ConsentKitError):
    """Raised when sealing a consent token fails"""

    def __init__(
        self,
        message: str = "Encryption operation failed",
        reason: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if reason:
            details["reason"] = reason
        super().__init__(message, "ENCRYPTION_FAILED", details)


class DecryptionError(EncryptionError):
    """Raised when opening a sealed consent token fails"""

    def __init__(
        self,
        message: str = "Decryption operation failed",
        reason: Optional[str] = None
    ):
        super().__init__(message, reason)
        self.error_code = "DECRYPTION_FAILED"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(ConsentKitError):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, "VALIDATION_ERROR", details)
