"""Low-level helpers shared by the protocol layer."""
