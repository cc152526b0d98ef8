"""Claims, configuration and the services built on them."""
