from catalog_api.models.product import Base, ProductORM

__all__ = ["Base", "ProductORM"]
