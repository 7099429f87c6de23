"""Domain layer: values, errors and SQL text services."""
