"""Python tool servers, each runnable with `python -m marketmind.tools.servers.<name>`."""
