"""Task and plan domain shared by the assistant and the store."""
