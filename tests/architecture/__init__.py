"""Architecture validation tests: layering and code conventions."""
