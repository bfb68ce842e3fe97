"""
Credential Store Factory

Selects the credential store adapter from HubSettings.
"""

import logging

from whitelist_hub.config import CredentialBackend, HubSettings
from whitelist_hub.credentials.json_file import JsonFileCredentialStore
from whitelist_hub.credentials.memory import InMemoryCredentialStore
from whitelist_hub.credentials.ports import CredentialStore

logger = logging.getLogger(__name__)


def create_credential_store(settings: HubSettings) -> CredentialStore:
    """
    Create the credential store configured by ``settings``.

    The memory backend starts empty; it is meant for tests and for
    embedding, where the caller populates it.
    """
    if settings.credential_backend == CredentialBackend.MEMORY:
        logger.info("Using in-memory credential store")
        return InMemoryCredentialStore()

    path = settings.credentials_path
    if not path.exists():
        logger.warning(f"Credential file {path} does not exist; no server can authenticate yet")
    else:
        logger.info(f"Using credential file {path}")
    return JsonFileCredentialStore(path)
