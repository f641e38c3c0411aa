"""GeoSync — viewport-synchronised map feature store and client."""
