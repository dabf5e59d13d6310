"""Mail protocols, content extraction and the services built on them."""
