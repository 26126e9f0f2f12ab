"""AWS Builder Hub - Main Package.

This package verifies cross-account role trust for registered AWS
accounts, lists resources across verified accounts and composes
provisioning modules into instance templates.
"""

__version__ = "1.0.0"
__author__ = "AWS Builder Hub Team"
