"""Command line tools for comparing and previewing database result sets."""
