"""Integration tests: gateways, brokers and modules working together."""
