"""External tool and API integrations."""
