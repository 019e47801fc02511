"""sensors — ingress for pushed sensor readings."""
