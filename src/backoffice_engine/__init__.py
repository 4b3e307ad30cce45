"""Back-office engine: teacher payroll runs and family SMS outreach."""

__version__ = "0.1.0"
