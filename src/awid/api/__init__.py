"""HTTP integration for the AWID coordination layer."""
