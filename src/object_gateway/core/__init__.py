"""
Core primitives of the gateway.

- PersistentSlotStore / StorageHandle: slot storage and the module's view of it
- CallForwarder: runs module code against a gateway's storage
- EventLog: append-only notifications
- SelfLogger: per-object TSV logs
- module_loader: loading logic modules and finding their operations
"""
