"""Construction of the object graph from configuration."""

from __future__ import annotations

from loguru import logger

from gokigen.ai.coordinator import AIRequestCoordinator
from gokigen.app.notebook import Notebook
from gokigen.app.paywall import PaywallCoordinator
from gokigen.bus.queue import MessageBus
from gokigen.config.schema import Config
from gokigen.providers.base import LLMProvider
from gokigen.providers.litellm_provider import LiteLLMProvider
from gokigen.quota.entitlements import EntitlementProvider, EntitlementService
from gokigen.quota.manager import QuotaManager
from gokigen.storage.kv import KeyValueStore
from gokigen.storage.local import LocalStore
from gokigen.sync.engine import SyncEngine
from gokigen.sync.network import NetworkMonitor
from gokigen.sync.remote import RemoteStore


def _make_provider(config: Config) -> LLMProvider:
    return LiteLLMProvider(
        api_key=config.ai.api_key or None,
        api_base=config.ai.api_base,
        default_model=config.ai.model,
        extra_headers=config.ai.extra_headers,
    )


def build_notebook(
    config: Config,
    remote: RemoteStore,
    provider: LLMProvider | None = None,
    entitlement_provider: EntitlementProvider | None = None,
    network: NetworkMonitor | None = None,
    store: KeyValueStore | None = None,
) -> Notebook:
    """
    Wire every component and return the Notebook facade.

    Args:
        config: Loaded configuration.
        remote: Remote entry store implementation.
        provider: Text-generation provider. Defaults to LiteLLM from config.ai.
        entitlement_provider: Purchase store; without one the plan stays free.
        network: Connectivity monitor; a fresh always-online one by default.
        store: Key-value store. Defaults to the state file under the data dir.
    """
    store = store if store is not None else KeyValueStore(config.state_path)
    network = network or NetworkMonitor()

    quota = QuotaManager(
        store,
        free_daily_limit=config.quota.free_daily_limit,
        lifetime_monthly_limit=config.quota.lifetime_monthly_limit,
        timezone=config.quota.timezone,
    )
    sync = SyncEngine(
        LocalStore(store),
        remote,
        network=network,
        page_size=config.sync.page_size,
        load_more_debounce_s=config.sync.load_more_debounce_s,
    )
    coordinator = AIRequestCoordinator(
        provider or _make_provider(config),
        quota,
        store,
        daily_network_limit=config.ai.daily_network_limit,
        cache_capacity=config.ai.cache_capacity,
        timeout_s=config.ai.request_timeout_s,
        model=config.ai.model,
        max_tokens=config.ai.max_tokens,
        temperature=config.ai.temperature,
    )
    entitlements = None
    if entitlement_provider is not None:
        entitlements = EntitlementService(
            entitlement_provider,
            quota,
            subscription_ids=config.products.subscription_ids,
            lifetime_ids=config.products.lifetime_ids,
        )

    notebook = Notebook(
        sync,
        coordinator,
        quota,
        MessageBus(),
        PaywallCoordinator(throttle_s=config.notices.paywall_throttle_s),
        entitlements=entitlements,
        network=network,
        trend_window=config.trends.window,
        recent_count=config.trends.recent_count,
        tz=quota.tz,
        success_display_s=config.notices.success_display_s,
        error_display_s=config.notices.error_display_s,
    )
    sync.load_unbound()
    logger.debug("Notebook ready (model {}, timezone {})", config.ai.model, config.quota.timezone)
    return notebook
