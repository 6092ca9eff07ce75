"""docgate command-line interface."""
