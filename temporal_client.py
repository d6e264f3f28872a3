"""Temporal client factory.

Connects to Temporal Cloud (API key + TLS) or to a local dev server,
using ReportSettings loaded from the environment / `.env`.
"""

from typing import Optional

from temporalio.client import Client

from core.config import ReportSettings


async def get_temporal_client(settings: Optional[ReportSettings] = None) -> Client:
    """Create and return a Temporal client.

    Reads:
    - TEMPORAL_ENDPOINT: e.g. "namespace.tmprl.cloud:7233" or "localhost:7233"
    - TEMPORAL_NAMESPACE: Namespace (default "default")
    - TEMPORAL_API_KEY: Cloud API key; when unset the connection is plain
      (local dev server)

    Raises:
        ValueError: If TEMPORAL_ENDPOINT is not set
    """
    settings = settings or ReportSettings.from_env()

    if not settings.temporal_endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable not set. "
            "Set to your Temporal endpoint (e.g., 'localhost:7233')"
        )

    if not settings.temporal_api_key:
        return await Client.connect(
            settings.temporal_endpoint,
            namespace=settings.temporal_namespace,
        )

    return await Client.connect(
        target_host=settings.temporal_endpoint,
        namespace=settings.temporal_namespace,
        tls=True,
        api_key=settings.temporal_api_key,
    )
