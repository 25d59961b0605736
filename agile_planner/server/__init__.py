"""JSON-RPC server over stdio: framing, routing and the tool catalog."""
