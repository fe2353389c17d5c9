"""
Custom exception classes for better error handling
"""
from typing import Optional, Dict, Any


class BookmarkManagerException(Exception):
    """Base exception for all custom exceptions"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationException(BookmarkManagerException):
    """Raised when a required backend is not configured"""
    pass


class ValidationException(BookmarkManagerException):
    """Raised when input validation fails"""
    pass


class AuthenticationException(BookmarkManagerException):
    """Raised when authentication fails or no session is present"""
    pass


class AuthorizationException(BookmarkManagerException):
    """Raised when user is not authorized"""
    pass


class BookmarkLoadException(BookmarkManagerException):
    """Raised when the bookmark list cannot be fetched"""
    pass


class BookmarkOperationException(BookmarkManagerException):
    """Raised when a create, update or delete is rejected by the backend"""
    pass
