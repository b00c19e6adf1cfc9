"""Remote Power Pages services."""

from theme_deployer.services.auth import ClientCredentialTokenProvider, TokenProvider
from theme_deployer.services.dataverse import DataverseClient, RemoteSiteClient
from theme_deployer.services.publisher import RemotePublisher

__all__ = [
    "ClientCredentialTokenProvider",
    "TokenProvider",
    "DataverseClient",
    "RemoteSiteClient",
    "RemotePublisher",
]
