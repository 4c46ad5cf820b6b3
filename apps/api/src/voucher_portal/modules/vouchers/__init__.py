"""
Vouchers Module

Voucher code generation, issuance, verification and the voucher lifecycle.

API Endpoints:
- POST /verify-voucher - Verify a code (vendor or admin)
- GET /vouchers/mine - School's vouchers
- GET /admin/vouchers, POST /admin/vouchers/{id}/cancel
- POST /admin/vouchers/reconcile

Background Jobs (via APScheduler):
- reconcile_voucher_codes_job: repairs partial writes
- expire_vouchers_job: expires vouchers past expires_at
"""
