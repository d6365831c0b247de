"""Pipeline run, report and removal endpoints."""
