"""AWS deployment components."""
