"""Application services: parsing, LLM analysis, visualizations, email and billing."""
