"""Settings, logging, errors, auth and process-wide providers."""
