"""
Storage — persistence, images and identity behind Result-returning protocols.

    from storefront import storage as ST

    session_factory, engine = await ST.create_database("sqlite+aiosqlite:///shop.db")
    repo = ST.SQLAlchemyStorage(session_factory)

    match await repo.fetch_product_by_slug("linen-shirt"):
        case Ok(product): ...
        case Error(NotFoundError()): ...
"""

from storefront.storage._protocols import (
    Outcome,
    CatalogRepository,
    CartRepository,
    DiscountRepository,
    OrderRepository,
    Storage,
    ImageStore,
    Role,
    Session,
    Identity,
)
from storefront.storage._tables import Base, create_database
from storefront.storage._sqlalchemy import boundary, SQLAlchemyStorage
from storefront.storage._images import MemoryImageStore, DirectoryImageStore
from storefront.storage._identity import MemoryIdentity

__all__ = (
    "Outcome",
    "CatalogRepository",
    "CartRepository",
    "DiscountRepository",
    "OrderRepository",
    "Storage",
    "ImageStore",
    "Role",
    "Session",
    "Identity",
    "Base",
    "create_database",
    "boundary",
    "SQLAlchemyStorage",
    "MemoryImageStore",
    "DirectoryImageStore",
    "MemoryIdentity",
)
