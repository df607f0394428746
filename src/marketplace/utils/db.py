"""Schema management for SQL-backed deployments of the Marketplace domain."""

from protean.domain import Domain
from sqlalchemy import create_engine

_SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in _SQL_PROVIDERS:
            yield provider


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every SQL provider. Returns the provider names touched."""
    touched = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Repositories register their models with SQLAlchemy lazily; touch
            # each DAO so the metadata knows about every table.
            records = [
                *domain.registry.aggregates.values(),
                *domain.registry.entities.values(),
                *domain.registry.projections.values(),
            ]
            for record in records:
                if record.cls.meta_.provider == provider.name:
                    domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            touched.append(provider.name)
    return touched


def drop_db(domain: Domain) -> list[str]:
    """Drop tables for every SQL provider. Returns the provider names touched."""
    touched = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            touched.append(provider.name)
    return touched
