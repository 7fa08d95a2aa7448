"""Site assignment and monthly payroll services for construction workforces."""

__version__ = "0.1.0"
