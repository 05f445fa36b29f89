"""Example workflows exercising the pipeline engine."""
