"""
Scholarships Module

Scholarship applications submitted by schools and decided by admins.
Approval issues a unique voucher code (and a voucher when an amount is set)
and emails it to the student.
"""
