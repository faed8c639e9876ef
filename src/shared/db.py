from protean.domain import Domain


def setup_db(domain: Domain, providers: list[str] | None = None):
    """Setup database schema for the named (or all) providers"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if providers is not None and provider.name not in providers:
                continue
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                for _, aggregate_record in domain.registry.aggregates.items():
                    if aggregate_record.cls.meta_.provider == provider.name:
                        domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

                for _, projection_record in domain.registry.projections.items():
                    if projection_record.cls.meta_.provider == provider.name:
                        domain.repository_for(projection_record.cls)._dao  # noqa: B018

                # Force DAO creation for outbox tables (registered as internal)
                if provider.name in domain._outbox_repos:
                    domain._outbox_repos[provider.name]._dao  # noqa: B018

                provider._metadata.create_all(provider._engine)


def drop_db(domain: Domain, providers: list[str] | None = None):
    """Drop database schema for the named (or all) providers"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if providers is not None and provider.name not in providers:
                continue
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                provider._metadata.drop_all(provider._engine)


def reset_db(domain: Domain):
    """Delete every row, keeping the schema"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            provider._data_reset()

        domain.event_store.store._data_reset()
