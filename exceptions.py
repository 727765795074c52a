"""Custom exceptions for the application."""


class SalesforceAPIError(Exception):
    """Base exception for Salesforce API errors."""
    pass


class AuthenticationError(SalesforceAPIError):
    """Raised when Salesforce authentication fails."""
    pass


class InvalidConfigurationError(SalesforceAPIError):
    """Raised when no usable Salesforce credentials are configured."""
    pass


class APIRequestError(SalesforceAPIError):
    """Raised when a Salesforce API request fails."""
    pass


class ObjectNotFoundError(APIRequestError):
    """Raised when the describe endpoint does not know an object."""
    pass


class SchemaStoreError(Exception):
    """Base exception for schema store errors."""
    pass


class ProcessNotFoundError(Exception):
    """Raised when a run ID is not found."""
    pass
