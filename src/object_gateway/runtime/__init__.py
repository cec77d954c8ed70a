"""
Gateway, AdminBroker, ModuleRegistry and the GatewayRuntime that wires them.
"""
