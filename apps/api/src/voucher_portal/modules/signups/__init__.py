"""
Signups Module

School and vendor account registration with admin review.

API Endpoints:
- POST /signups/schools, GET /signups/schools/me
- POST /signups/vendors, GET /signups/vendors/me
- GET /admin/signups/schools, POST /admin/signups/schools/{id}/{action}
- GET /admin/signups/vendors, POST /admin/signups/vendors/{id}/{action}

Approved schools may submit scholarship applications and voucher requests.
Approved or active vendors may submit voucher codes for redemption.
"""
