"""
Services
"""
from innet.services.alias_store import (AliasRecord, AliasStore,  # noqa: F401
                                        InMemoryAliasStore,
                                        SqlAlchemyAliasStore)
from innet.services.share_link_service import ShareLinkService  # noqa: F401
