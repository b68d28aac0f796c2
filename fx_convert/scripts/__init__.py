"""Command line entry points for fx_convert."""
