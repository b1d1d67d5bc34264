"""Pure metrics pipeline: templating, parameters, normalization, derivation."""
