"""Schema management for SQL providers."""

from protean.domain import Domain
from sqlalchemy import create_engine

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _touch_daos(domain: Domain, provider_name: str) -> None:
    """Instantiate every DAO so its table is registered on the provider's metadata."""
    registry = domain.registry
    for records in (registry.aggregates, registry.entities):
        for _, record in records.items():
            if record.cls.meta_.provider == provider_name:
                domain.repository_for(record.cls)._dao  # noqa: B018

    if hasattr(domain, "_outbox_repos") and provider_name in domain._outbox_repos:
        domain._outbox_repos[provider_name]._dao  # noqa: B018


def setup_db(domain: Domain):
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _SQL_PROVIDERS:
                _touch_daos(domain, provider.name)
                provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))


def drop_db(domain: Domain):
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _SQL_PROVIDERS:
                _touch_daos(domain, provider.name)
                provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))
