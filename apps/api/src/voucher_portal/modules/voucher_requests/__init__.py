"""
Voucher Requests Module

Schools request vouchers; admin approval creates the voucher.
"""
