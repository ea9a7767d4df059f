from gamelib.services.catalog.igdb_client import IgdbCatalogClient

__all__ = ["IgdbCatalogClient"]
