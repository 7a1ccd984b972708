"""In-memory dataset registry."""

from .synthetic import available_datasets, from_arrays, get, register_dataset

__all__ = ["available_datasets", "from_arrays", "get", "register_dataset"]
