"""Feature slices of the CRM API."""
