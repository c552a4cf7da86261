"""Top-N item recommendation model constructor for latent-factor models."""

__version__ = "0.1"
