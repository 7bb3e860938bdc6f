"""P.T.S. allowance engine: request approvals and monthly allowance payroll."""

__version__ = "0.1.0"
