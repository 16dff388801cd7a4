"""Operator tools for moving data into a new deployment: record import and bulk file downloads."""
