"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from lookbook.adapters.key_value_storage import FileKeyValueStorage
from lookbook.adapters.local_look_store import LocalLookStore
from lookbook.adapters.openai_generation_client import OpenAIGenerationClient
from lookbook.adapters.supabase_auth_backend import SupabaseAuthBackend
from lookbook.adapters.supabase_look_store import SupabaseLookStore
from lookbook.config import Settings
from lookbook.services.generation import GenerationService
from lookbook.services.identity import IdentityMonitor
from lookbook.services.live_feed import LiveLookFeed
from lookbook.services.looks import LookRepository


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    identity_monitor: IdentityMonitor
    look_repository: LookRepository
    generation_service: GenerationService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_anon_key
    )
    remote_store = SupabaseLookStore(
        client=supabase_client,
        table=resolved_settings.looks_table,
        bucket=resolved_settings.looks_bucket,
    )
    local_store = LocalLookStore(
        storage=FileKeyValueStorage(resolved_settings.local_storage_dir),
        key=resolved_settings.local_storage_key,
        capacity_bytes=resolved_settings.local_capacity_bytes,
    )
    look_repository = LookRepository(
        local_store=local_store,
        remote_store=remote_store,
        feed=LiveLookFeed(
            store=remote_store,
            poll_interval_seconds=resolved_settings.remote_poll_interval_seconds,
        ),
    )
    identity_monitor = IdentityMonitor(SupabaseAuthBackend(supabase_client))
    openai_client = OpenAIGenerationClient.create(resolved_settings.openai_api_key)
    generation_service = GenerationService(
        client=openai_client,
        model=resolved_settings.openai_model,
        image_model=resolved_settings.openai_image_model,
    )

    async def close_resources() -> None:
        await look_repository.close()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        identity_monitor=identity_monitor,
        look_repository=look_repository,
        generation_service=generation_service,
        close_resources=close_resources,
    )
