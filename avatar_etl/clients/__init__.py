"""HTTP clients for the chain directory, LCD endpoints and Keybase."""
