"""
Vendor Submissions Module

Vendors submit voucher codes for redemption; admins approve or reject them.
"""
