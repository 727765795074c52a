"""Salesforce API service."""
import concurrent.futures
import logging
from typing import Dict, List, Optional, Tuple

import requests

from config import (
    get_settings,
    SALESFORCE_TOKEN_URL,
    SALESFORCE_OBJECTS_URL,
    SALESFORCE_DESCRIBE_URL,
    SALESFORCE_UI_API_OBJECT_INFO_URL,
    SALESFORCE_PRODUCTION_URL,
    Settings,
)
from exceptions import (
    AuthenticationError,
    APIRequestError,
    InvalidConfigurationError,
    ObjectNotFoundError,
)
from models import (
    DescribeResult,
    GlobalObject,
    SalesforceCredentials,
    TokenResponse,
)

logger = logging.getLogger(__name__)

CONNECTION_HELP = (
    "Provide either SF_ACCESS_TOKEN + SF_INSTANCE_URL (recommended, e.g. from "
    "`sf org display --json`), or SF_USERNAME + SF_PASSWORD (+ SF_SECURITY_TOKEN) "
    "together with SF_CLIENT_ID + SF_CLIENT_SECRET of a connected app."
)


def _error_detail(response: requests.Response, default: str) -> str:
    """Best-effort error message from a Salesforce error response."""
    try:
        error_data = response.json()
    except ValueError:
        return response.text or default
    # REST errors come back as a list of {message, errorCode}
    if isinstance(error_data, list) and error_data:
        error_data = error_data[0]
    if isinstance(error_data, dict):
        return (
            error_data.get('error_description')
            or error_data.get('message')
            or error_data.get('error')
            or default
        )
    return default


class SalesforceService:
    """Service for interacting with the Salesforce describe APIs."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the Salesforce service."""
        self.settings = settings or get_settings()
        self.api_version = self.settings.salesforce_api_version
        self.access_token: Optional[str] = None
        self.instance_url: Optional[str] = None
        self.session = requests.Session()

    def get_access_token(self, credentials: SalesforceCredentials) -> TokenResponse:
        """
        Retrieve access token from Salesforce using password flow.

        Args:
            credentials: Salesforce authentication credentials

        Returns:
            Token response containing access token and instance information

        Raises:
            AuthenticationError: If authentication fails
        """
        login_url = (credentials.get('login_url') or SALESFORCE_PRODUCTION_URL).rstrip('/')
        token_url = f"{login_url}{SALESFORCE_TOKEN_URL}"

        password = credentials['password'] + (credentials.get('security_token') or '')
        payload = {
            'grant_type': 'password',
            'client_id': credentials['client_id'],
            'client_secret': credentials['client_secret'],
            'username': credentials['username'],
            'password': password
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        logger.info(f"Requesting access token from {token_url}")
        try:
            response = self.session.post(token_url, headers=headers, data=payload, timeout=30)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error during authentication: {e}")
            raise AuthenticationError(f"Network error during authentication: {e}")

        if response.ok:
            logger.info("Access token retrieved successfully.")
            return response.json()

        error_detail = _error_detail(response, str(response.status_code))
        logger.error(f"Salesforce authentication failed ({response.status_code}): {error_detail}")

        if 'invalid_grant' in error_detail.lower() or 'authentication failure' in error_detail.lower():
            raise AuthenticationError(
                f"Authentication failed: Invalid username or password. "
                f"If IP restrictions are enabled, set SF_SECURITY_TOKEN. "
                f"Error: {error_detail}"
            )
        if 'invalid_client' in error_detail.lower():
            raise AuthenticationError(
                f"Authentication failed: Invalid Client ID (Consumer Key) or secret. "
                f"Error: {error_detail}"
            )
        raise AuthenticationError(
            f"Failed to authenticate with Salesforce (Status {response.status_code}): {error_detail}"
        )

    def connect(self) -> Tuple[str, str]:
        """
        Establish a session from the configured credentials.

        Returns:
            Tuple of (access_token, instance_url)

        Raises:
            InvalidConfigurationError: If no usable credentials are configured
            AuthenticationError: If the login is refused
        """
        settings = self.settings

        if settings.salesforce_access_token and settings.salesforce_instance_url:
            logger.info("Using configured access token")
            self.access_token = settings.salesforce_access_token
            self.instance_url = settings.salesforce_instance_url.rstrip('/')
            return self.access_token, self.instance_url

        has_password = settings.salesforce_username and settings.salesforce_password
        has_client = settings.salesforce_client_id and settings.salesforce_client_secret
        if not (has_password and has_client):
            raise InvalidConfigurationError(f"No Salesforce credentials configured. {CONNECTION_HELP}")

        credentials: SalesforceCredentials = {
            'client_id': settings.salesforce_client_id,
            'client_secret': settings.salesforce_client_secret,
            'username': settings.salesforce_username,
            'password': settings.salesforce_password,
            'security_token': settings.salesforce_security_token or '',
            'login_url': settings.salesforce_login_url,
        }
        token_response = self.get_access_token(credentials)
        self.access_token = token_response['access_token']
        self.instance_url = (token_response.get('instance_url') or settings.salesforce_login_url).rstrip('/')
        logger.info(f"Using Salesforce instance: {self.instance_url}")
        return self.access_token, self.instance_url

    def disconnect(self) -> None:
        """Forget the session."""
        self.access_token = None
        self.instance_url = None
        self.session.close()

    def _headers(self) -> Dict[str, str]:
        if not self.access_token or not self.instance_url:
            raise APIRequestError("Not connected to Salesforce. Call connect() first.")
        return {
            'Authorization': f'Bearer {self.access_token}',
            'Accept': 'application/json'
        }

    def _get(self, path: str, description: str) -> dict:
        headers = self._headers()
        url = f"{self.instance_url}{path}"
        logger.debug(f"GET {url}")

        try:
            response = self.session.get(url, headers=headers, timeout=60)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error while retrieving {description}: {e}")
            raise APIRequestError(f"Network error while retrieving {description}: {e}")

        if response.status_code == 401:
            raise AuthenticationError(
                f"Session rejected while retrieving {description}: {_error_detail(response, 'Unauthorized')}. "
                f"The access token may have expired."
            )
        if response.status_code == 404:
            raise ObjectNotFoundError(f"Not found: {description}")
        if not response.ok:
            error_detail = _error_detail(response, str(response.status_code))
            logger.error(f"Failed to retrieve {description}: {error_detail}")
            raise APIRequestError(f"Failed to retrieve {description}: {error_detail}")

        return response.json()

    def describe_global(self) -> List[GlobalObject]:
        """
        Retrieve the catalog of objects in the org.

        Returns:
            List of {name, label, custom} in API order

        Raises:
            APIRequestError: If the API request fails
        """
        data = self._get(SALESFORCE_OBJECTS_URL.format(version=self.api_version), "object catalog")
        objects = [
            {
                'name': obj.get('name'),
                'label': obj.get('label'),
                'custom': bool(obj.get('custom')),
            }
            for obj in data.get('sobjects', [])
            if obj.get('name')
        ]
        logger.info(f"Retrieved {len(objects)} objects from describeGlobal.")
        return objects

    def get_theme_info(self, object_name: str) -> Optional[Dict[str, str]]:
        """Icon metadata from the UI API; None when the UI API has nothing for the object."""
        path = SALESFORCE_UI_API_OBJECT_INFO_URL.format(version=self.api_version, object_name=object_name)
        try:
            data = self._get(path, f"UI API object info for {object_name}")
        except APIRequestError as e:
            logger.warning(f"Could not fetch UI API data for {object_name}: {e}")
            return None

        theme_info = data.get('themeInfo')
        if not theme_info:
            return None
        return {'color': theme_info.get('color'), 'iconUrl': theme_info.get('iconUrl')}

    def describe_object(self, object_name: str, include_icons: bool = True) -> DescribeResult:
        """
        Retrieve the full describe result of one object.

        Args:
            object_name: Name of the Salesforce object
            include_icons: Also ask the UI API for theme/icon information

        Returns:
            Describe result of the object

        Raises:
            ObjectNotFoundError: If the org has no such object
            APIRequestError: If the API request fails
        """
        path = SALESFORCE_DESCRIBE_URL.format(version=self.api_version, object_name=object_name)
        describe = self._get(path, f"describe of {object_name}")
        logger.debug(f"Retrieved {len(describe.get('fields', []))} fields for object: {object_name}.")

        if include_icons:
            theme_info = self.get_theme_info(object_name)
            if theme_info:
                describe['themeInfo'] = theme_info
        return describe

    def describe_objects(
        self,
        object_names: List[str],
        include_icons: bool = True,
        max_workers: Optional[int] = None
    ) -> List[Tuple[str, Optional[DescribeResult], Optional[Exception]]]:
        """
        Describe several independent objects concurrently.

        Args:
            object_names: Objects to describe
            include_icons: Also fetch UI API icon information
            max_workers: Concurrent requests, settings.max_workers by default

        Returns:
            (name, describe result or None, error or None) in input order
        """
        workers = max_workers or self.settings.max_workers
        results: List[Tuple[str, Optional[DescribeResult], Optional[Exception]]] = []

        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self.describe_object, name, include_icons)
                for name in object_names
            ]
            for name, future in zip(object_names, futures):
                try:
                    results.append((name, future.result(), None))
                except AuthenticationError:
                    raise
                except Exception as e:
                    results.append((name, None, e))

        return results
