"""Configuration, errors, wire models and HTTP plumbing shared by the pipeline."""
