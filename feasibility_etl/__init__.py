"""Feasibility review ETL: Jira feasibility reviews into a reporting table."""

__version__ = "0.1.0"
