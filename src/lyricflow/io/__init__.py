"""Audio transports, capture sink and media loading."""
