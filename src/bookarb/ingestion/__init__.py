"""Wire feed ingestion: message parsing and the WebSocket client."""
