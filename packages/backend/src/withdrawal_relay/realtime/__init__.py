"""Real-time infrastructure — connection hub + Redis pub/sub + WebSocket.

Learn: Events flow through two channels:
1. Services → publish_event → Redis PUBLISH (shared across app processes)
2. Redis SUBSCRIBE → relay task → ConnectionHub → every connected client

Without Redis the relay step is skipped and publish_event hands the
message straight to the local hub.
"""
