"""AWS credential strategy selection for the Kinesis sink.

The access-key and secret-key settings either carry a literal key pair or
both carry the same reserved token naming where credentials come from:

* ``cpf`` - the local AWS shared credentials file
* ``iam`` - the role attached to the host (instance metadata)
* ``env`` - ``AWS_ACCESS_KEY_ID`` / ``AWS_SECRET_ACCESS_KEY`` in the environment

Using a token for only one of the two settings is a configuration error.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum

import boto3
import botocore.session
from botocore import credentials as botocore_credentials
from botocore.utils import InstanceMetadataFetcher

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_METADATA_TIMEOUT_SECONDS = 1.0
_METADATA_ATTEMPTS = 2


class CredentialStrategy(str, Enum):
    CREDENTIALS_FILE = "cpf"
    INSTANCE_ROLE = "iam"
    ENVIRONMENT = "env"
    STATIC = "static"


RESERVED_TOKENS = {
    CredentialStrategy.CREDENTIALS_FILE.value: CredentialStrategy.CREDENTIALS_FILE,
    CredentialStrategy.INSTANCE_ROLE.value: CredentialStrategy.INSTANCE_ROLE,
    CredentialStrategy.ENVIRONMENT.value: CredentialStrategy.ENVIRONMENT,
}


@dataclass(frozen=True)
class ResolvedCredentials:
    strategy: CredentialStrategy
    access_key: str | None = None
    secret_key: str | None = None

    def __repr__(self) -> str:
        return f"ResolvedCredentials(strategy={self.strategy.name})"


class CredentialResolver:
    """Validate the key pair once, then map it onto a single strategy."""

    def resolve(self, access_key: str, secret_key: str) -> ResolvedCredentials:
        access_token = RESERVED_TOKENS.get(access_key)
        secret_token = RESERVED_TOKENS.get(secret_key)
        if access_token is None and secret_token is None:
            return ResolvedCredentials(
                strategy=CredentialStrategy.STATIC,
                access_key=access_key,
                secret_key=secret_key,
            )
        if access_token != secret_token:
            token = (access_token or secret_token).value  # type: ignore[union-attr]
            raise ConfigurationError(
                "CREDENTIAL_TOKEN_MISMATCH",
                f"access-key and secret-key must both be set to '{token}', or neither of them",
            )
        return ResolvedCredentials(strategy=access_token)


def resolve_credentials(access_key: str, secret_key: str) -> ResolvedCredentials:
    return CredentialResolver().resolve(access_key, secret_key)


def credential_providers(
    resolved: ResolvedCredentials,
    *,
    credentials_file: str | None = None,
    credentials_profile: str | None = None,
) -> list[botocore_credentials.CredentialProvider]:
    """Botocore providers backing a token strategy; empty for static keys."""
    if resolved.strategy is CredentialStrategy.CREDENTIALS_FILE:
        path = os.path.expanduser(credentials_file or os.path.join("~", ".aws", "credentials"))
        return [
            botocore_credentials.SharedCredentialProvider(
                creds_filename=path,
                profile_name=credentials_profile or "default",
            )
        ]
    if resolved.strategy is CredentialStrategy.INSTANCE_ROLE:
        fetcher = InstanceMetadataFetcher(
            timeout=_METADATA_TIMEOUT_SECONDS,
            num_attempts=_METADATA_ATTEMPTS,
        )
        return [botocore_credentials.InstanceMetadataProvider(iam_role_fetcher=fetcher)]
    if resolved.strategy is CredentialStrategy.ENVIRONMENT:
        return [botocore_credentials.EnvProvider()]
    return []


def build_session(
    resolved: ResolvedCredentials,
    *,
    region: str | None = None,
    credentials_file: str | None = None,
    credentials_profile: str | None = None,
) -> boto3.Session:
    logger.info("Kinesis sink credentials strategy=%s", resolved.strategy.name)
    if resolved.strategy is CredentialStrategy.STATIC:
        return boto3.Session(
            aws_access_key_id=resolved.access_key,
            aws_secret_access_key=resolved.secret_key,
            region_name=region,
        )
    core_session = botocore.session.Session()
    providers = credential_providers(
        resolved,
        credentials_file=credentials_file,
        credentials_profile=credentials_profile,
    )
    core_session.register_component(
        "credential_provider",
        botocore_credentials.CredentialResolver(providers=providers),
    )
    return boto3.Session(botocore_session=core_session, region_name=region)
