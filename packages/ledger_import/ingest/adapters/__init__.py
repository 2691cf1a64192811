"""Source-format adapters (SIE4, SIE5, OFX)."""
