"""GiftPerch API service."""
