"""Foundation: errors and results, configuration, tool registry, test helpers."""
