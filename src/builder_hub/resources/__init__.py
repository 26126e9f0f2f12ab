"""Read-only resource listing over verified accounts."""
