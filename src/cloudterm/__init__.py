"""cloudterm -- Browser terminal bridge to remote compute instances.

A WebSocket client names an instance; the bridge resolves the instance's
public address, opens an SSH shell on it and relays terminal bytes in
both directions for the lifetime of the connection.
"""

__version__ = "0.1.0"
