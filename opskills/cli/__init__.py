"""opskills command-line interface."""
