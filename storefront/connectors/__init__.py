from storefront.connectors.storefront_api import StorefrontAPIConnector

__all__ = ['StorefrontAPIConnector']
