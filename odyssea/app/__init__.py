"""Application layer: stores, derived bindings and theme."""
