from bulk_editor.config.context import ProcessingContext
from bulk_editor.metadata.base import BaseMetadataClient
from bulk_editor.metadata.cache import CachingMetadataClient
from bulk_editor.metadata.example_client import ExampleMetadataClient
from bulk_editor.metadata.http_client import HttpMetadataClient
from bulk_editor.metadata.retry import RetryExecutor, RetryPolicy


class MetadataClientFactory:
    """Creates the configured metadata client."""

    PROVIDERS = ("http", "example")

    @classmethod
    def create(cls, context: ProcessingContext) -> BaseMetadataClient:
        settings = context.settings
        log = context.log.child("metadata")
        provider = settings.metadata_provider.lower()
        client: BaseMetadataClient
        if provider == "example":
            client = ExampleMetadataClient()
        elif provider == "http":
            client = HttpMetadataClient(
                endpoint=settings.metadata_api_url,
                log=log,
                retry=RetryExecutor(cls.retry_policy(context), log),
                timeout_seconds=settings.http_timeout_seconds,
                max_concurrent_requests=settings.http_max_concurrent_requests,
                api_key=settings.metadata_api_key,
                user_agent=settings.user_agent,
            )
        else:
            raise ValueError(
                f"Unknown metadata provider '{provider}'. Choose from: {list(cls.PROVIDERS)}"
            )

        if settings.metadata_cache_enabled:
            return CachingMetadataClient(
                client,
                ttl_seconds=settings.metadata_cache_ttl_seconds,
                log=log,
            )
        return client

    @staticmethod
    def retry_policy(context: ProcessingContext) -> RetryPolicy:
        settings = context.settings
        return RetryPolicy(
            max_retries=settings.http_max_retries,
            base_delay=settings.http_retry_base_delay_seconds,
            max_delay=settings.http_retry_max_delay_seconds,
        )
