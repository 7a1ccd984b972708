"""Cost functions, the local training loop and configuration pipelines."""
