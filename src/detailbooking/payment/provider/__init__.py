"""Payment gateway providers."""
