"""HomeService booking lifecycle and rating aggregation backend."""
