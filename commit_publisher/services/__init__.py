# Services module - delivery, URL parsing and provider integrations
