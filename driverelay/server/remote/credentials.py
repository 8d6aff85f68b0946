"""Credential loading for the Google backends."""

import logging
from typing import TYPE_CHECKING

import google.auth
from google.auth.credentials import Credentials
from google.oauth2 import service_account

if TYPE_CHECKING:
    from driverelay.server.config import ServerSettings

logger = logging.getLogger(__name__)


def load_credentials(settings: "ServerSettings", default_scopes: list[str]) -> Credentials:
    """Build the credential used for every remote call.

    A service-account key file is used when configured, optionally
    impersonating ``credentials_subject`` through domain-wide delegation.
    Otherwise Application Default Credentials are used.
    """
    scopes = settings.credentials_scopes or default_scopes

    if settings.credentials_file:
        credentials = service_account.Credentials.from_service_account_file(
            str(settings.credentials_file),
            scopes=scopes,
        )
        if settings.credentials_subject:
            credentials = credentials.with_subject(settings.credentials_subject)
        logger.info("Loaded service account %s", credentials.service_account_email)
        return credentials

    credentials, project = google.auth.default(scopes=scopes)
    logger.info("Using application default credentials (project=%s)", project)
    return credentials
